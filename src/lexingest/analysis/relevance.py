"""Cross-domain relevance engine.

Decides which legal domains a source belongs to beyond its primary domain by
evaluating a static, ordered rule table. The result is a pure function of the
source, the domain list and the rule table: links are computed on read and
never persisted.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import structlog

from lexingest.models import DomainRelevance, LegalDomain, LegalSource

from .rules import DEFAULT_RULES, RULESET_VERSION, RelevanceRule

logger = structlog.get_logger(__name__)

# Scores below this are never reported as relevant
RELEVANCE_THRESHOLD = 0.7

NO_MATCH_REASONING = "No relevance detected"


@dataclass(frozen=True)
class DomainLink:
    """One source as it appears in a domain bucket."""
    source_id: str
    citation: str
    primary: bool
    relevance_score: float
    reasoning: str


class RelevanceEngine:
    """First-match rule evaluation per (source, domain) pair."""

    def __init__(
        self,
        rules: tuple[RelevanceRule, ...] = DEFAULT_RULES,
        ruleset_version: str = RULESET_VERSION,
    ) -> None:
        self.rules = tuple(rules)
        self.ruleset_version = ruleset_version

    def score(self, source: LegalSource, domain: LegalDomain) -> tuple[float, str]:
        """Return ``(score, reasoning)`` for one domain, 0 when no rule matches."""
        haystacks = (source.long_title or "", source.citation or "")
        slug = domain.slug.lower()
        for rule in self.rules:
            if rule.covers(slug) and rule.matches_source(haystacks):
                return rule.score, rule.reasoning
        return 0.0, NO_MATCH_REASONING

    def find_relevant_domains(
        self,
        source: LegalSource,
        all_domains: Iterable[LegalDomain],
    ) -> list[DomainRelevance]:
        relevant: list[DomainRelevance] = []
        for domain in all_domains:
            score, reasoning = self.score(source, domain)
            if score >= RELEVANCE_THRESHOLD:
                relevant.append(
                    DomainRelevance(
                        domain_id=domain.id,
                        domain_slug=domain.slug,
                        domain_name=domain.name,
                        relevance_score=score,
                        reasoning=reasoning,
                    )
                )
        return relevant

    def auto_link(
        self,
        source: LegalSource,
        all_domains: Iterable[LegalDomain],
    ) -> dict[str, object]:
        """Log and summarize the relevant domains of ``source``."""
        domains = self.find_relevant_domains(source, all_domains)
        logger.info(
            "relevance.linked",
            source_id=source.id,
            citation=source.citation,
            ruleset=self.ruleset_version,
            linked=len(domains),
        )
        for d in domains:
            logger.info(
                "relevance.domain",
                domain=d.domain_slug,
                score=d.relevance_score,
                reasoning=d.reasoning,
            )
        return {"linked": len(domains), "domains": domains}

    def domain_buckets(
        self,
        sources: Iterable[LegalSource],
        all_domains: Iterable[LegalDomain],
    ) -> dict[str, list[DomainLink]]:
        """Group sources under every domain they belong to.

        A source is listed under its primary domain and under each domain the
        rules find relevant; the same source may appear in several buckets.
        """
        domains = list(all_domains)
        buckets: dict[str, list[DomainLink]] = {d.slug: [] for d in domains}
        for source in sources:
            for domain in domains:
                if source.legal_domain_slug == domain.slug:
                    buckets[domain.slug].append(
                        DomainLink(source.id, source.citation, True, 1.0, "Primary domain")
                    )
                    continue
                score, reasoning = self.score(source, domain)
                if score >= RELEVANCE_THRESHOLD:
                    buckets[domain.slug].append(
                        DomainLink(source.id, source.citation, False, score, reasoning)
                    )
        return buckets
