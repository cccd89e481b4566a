"""Declarative statute-to-domain relevance rules.

Order matters: for a given domain the first rule that matches wins. Adding a
jurisdiction means adding rules here or in a YAML rule file passed to
``load_rules``; the engine itself never changes.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml


@dataclass(frozen=True)
class RelevanceRule:
    keywords: tuple[str, ...]
    domains: tuple[str, ...]
    score: float
    reasoning: str

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Rule score {self.score} outside [0, 1]")
        if not self.keywords or not self.domains:
            raise ValueError("Rule needs at least one keyword and one domain")

    def matches_source(self, haystacks: Iterable[str]) -> bool:
        texts = [h.lower() for h in haystacks]
        return any(keyword in text for keyword in self.keywords for text in texts)

    def covers(self, domain_slug: str) -> bool:
        return domain_slug.lower() in self.domains

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelevanceRule:
        return cls(
            keywords=tuple(str(k).lower() for k in data["keywords"]),
            domains=tuple(str(d).lower() for d in data["domains"]),
            score=float(data["score"]),
            reasoning=str(data["reasoning"]),
        )


RULESET_VERSION = "ca-on-2025.1"

ONTARIO_RULES: tuple[RelevanceRule, ...] = (
    RelevanceRule(
        keywords=("employment standards", "esa", "2000, c. 41"),
        domains=("employment-contracts", "wrongful-termination", "wage-hour-disputes", "workplace-harassment"),
        score=0.95,
        reasoning="Employment Standards Act governs all employment relationships in Ontario",
    ),
    RelevanceRule(
        keywords=("human rights", "h.19", "ohrc"),
        domains=("employment-discrimination", "housing-discrimination", "disability-rights"),
        score=0.95,
        reasoning="Human Rights Code prohibits discrimination in employment, housing, and services",
    ),
    RelevanceRule(
        keywords=("residential tenancies", "rta", "2006, c. 17"),
        domains=("landlord-tenant-residential", "eviction-defense"),
        score=0.95,
        reasoning="Residential Tenancies Act governs all residential rental relationships",
    ),
    RelevanceRule(
        keywords=("children's law reform", "clra", "c.12", "2016, c. 23"),
        domains=("child-custody", "child-support", "divorce-separation"),
        score=0.95,
        reasoning="Children's Law Reform Act governs custody, access, and separation arrangements",
    ),
    RelevanceRule(
        keywords=("family law act", "fla", "f.3"),
        domains=("child-support", "spousal-support", "divorce-separation"),
        score=0.95,
        reasoning="Family Law Act governs family property, support obligations, and separation",
    ),
    RelevanceRule(
        keywords=("consumer protection", "cpa", "2002, c. 30"),
        domains=("consumer-fraud", "product-liability", "debt-collection"),
        score=0.90,
        reasoning="Consumer Protection Act regulates consumer transactions and unfair practices",
    ),
    RelevanceRule(
        keywords=("accessibility", "aoda", "2005, c. 11"),
        domains=("disability-rights", "employment-discrimination"),
        score=0.90,
        reasoning="AODA requires accessibility accommodations in employment and services",
    ),
    RelevanceRule(
        keywords=("police services", "p.15"),
        domains=("police-misconduct",),
        score=0.95,
        reasoning="Police Services Act governs police conduct and complaints",
    ),
    RelevanceRule(
        keywords=("courts of justice", "c.43"),
        domains=("small-claims", "contract-disputes"),
        score=0.85,
        reasoning="Courts of Justice Act establishes small claims court procedures",
    ),
    RelevanceRule(
        keywords=("immigration", "refugee protection", "irpa", "2001, c. 27"),
        domains=("immigration-status", "refugee-asylum"),
        score=0.95,
        reasoning="IRPA governs immigration, refugee claims, and protection in Canada",
    ),
    RelevanceRule(
        keywords=("occupational health", "safety", "ohsa", "o.1"),
        domains=("workplace-harassment", "employment-contracts"),
        score=0.85,
        reasoning="OHSA requires safe workplaces and addresses workplace violence/harassment",
    ),
)

DEFAULT_RULES: tuple[RelevanceRule, ...] = ONTARIO_RULES


def load_rules(path: Path | str, base: tuple[RelevanceRule, ...] = DEFAULT_RULES) -> tuple[RelevanceRule, ...]:
    """Append the rules of a YAML file to ``base``.

    The file holds a top-level ``rules`` list of mappings with ``keywords``,
    ``domains``, ``score`` and ``reasoning``.
    """
    with Path(path).open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    extra = tuple(RelevanceRule.from_dict(r) for r in data.get("rules", []))
    return base + extra
