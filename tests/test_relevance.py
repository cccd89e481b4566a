"""Tests for the cross-domain relevance rules."""
from __future__ import annotations

from pathlib import Path

import pytest

from lexingest.analysis import (
    DEFAULT_RULES,
    RELEVANCE_THRESHOLD,
    RelevanceEngine,
    RelevanceRule,
    load_rules,
)
from lexingest.models import LegalDomain, LegalSource


def source(title: str, citation: str = "X", primary: str | None = None) -> LegalSource:
    return LegalSource(citation=citation, long_title=title, jurisdiction_code="CA-ON", legal_domain_slug=primary)


def domain(slug: str) -> LegalDomain:
    return LegalDomain(slug=slug, name=slug.replace("-", " ").title())


ALL = [
    domain("wrongful-termination"),
    domain("employment-contracts"),
    domain("landlord-tenant-residential"),
    domain("child-support"),
    domain("small-claims"),
]


class TestScore:
    def test_esa_is_relevant_to_wrongful_termination(self):
        engine = RelevanceEngine()
        esa = source("Employment Standards Act, 2000", "SO 2000, c. 41")

        score, reasoning = engine.score(esa, domain("wrongful-termination"))

        assert score == 0.95
        assert "Employment Standards Act" in reasoning

    def test_keyword_match_is_case_insensitive_on_citation(self):
        engine = RelevanceEngine()
        rta = source("Some Act", "S.O. 2006, C. 17")
        assert engine.score(rta, domain("eviction-defense"))[0] == 0.95

    def test_no_rule_means_zero(self):
        engine = RelevanceEngine()
        score, reasoning = engine.score(source("Highway Traffic Act"), domain("wrongful-termination"))
        assert score == 0.0
        assert reasoning == "No relevance detected"

    def test_first_matching_rule_wins(self):
        rules = (
            RelevanceRule(("widget",), ("d",), 0.8, "first"),
            RelevanceRule(("widget",), ("d",), 0.99, "second"),
        )
        assert RelevanceEngine(rules).score(source("Widget Act"), domain("d")) == (0.8, "first")

    def test_scores_only_come_from_rule_table(self):
        engine = RelevanceEngine()
        allowed = {r.score for r in DEFAULT_RULES} | {0.0}
        for title in ["Employment Standards Act", "Human Rights Code", "Family Law Act", "Courts of Justice Act", "Zoning"]:
            for d in ALL:
                assert engine.score(source(title), d)[0] in allowed


class TestFindRelevantDomains:
    def test_returns_only_domains_at_or_above_threshold(self):
        rules = (
            RelevanceRule(("lease",), ("landlord-tenant-residential",), 0.69, "too weak"),
            RelevanceRule(("lease",), ("small-claims",), 0.7, "just enough"),
        )
        found = RelevanceEngine(rules).find_relevant_domains(source("Lease Act"), ALL)
        assert [d.domain_slug for d in found] == ["small-claims"]
        assert all(d.relevance_score >= RELEVANCE_THRESHOLD for d in found)

    def test_no_match_is_empty_list(self):
        assert RelevanceEngine().find_relevant_domains(source("Highway Traffic Act"), ALL) == []

    def test_is_idempotent(self):
        engine = RelevanceEngine()
        esa = source("Employment Standards Act, 2000")
        assert engine.find_relevant_domains(esa, ALL) == engine.find_relevant_domains(esa, ALL)

    def test_auto_link_summarizes(self):
        result = RelevanceEngine().auto_link(source("Employment Standards Act, 2000"), ALL)
        assert result["linked"] == 2
        assert {d.domain_slug for d in result["domains"]} == {"wrongful-termination", "employment-contracts"}


class TestDomainBuckets:
    def test_source_appears_under_primary_and_relevant_domains(self):
        engine = RelevanceEngine()
        esa = source("Employment Standards Act, 2000", primary="employment-contracts")

        buckets = engine.domain_buckets([esa], ALL)

        primary = buckets["employment-contracts"][0]
        assert primary.primary and primary.relevance_score == 1.0
        linked = buckets["wrongful-termination"][0]
        assert not linked.primary and linked.relevance_score == 0.95
        assert buckets["child-support"] == []


class TestRules:
    def test_rule_rejects_out_of_range_score(self):
        with pytest.raises(ValueError):
            RelevanceRule(("a",), ("b",), 1.5, "bad")

    def test_load_rules_appends_yaml_rules(self, tmp_path: Path):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n"
            "  - keywords: [tenant protection]\n"
            "    domains: [Landlord-Tenant-Residential]\n"
            "    score: 0.9\n"
            "    reasoning: BC tenancy statute\n",
            encoding="utf-8",
        )

        rules = load_rules(path)

        assert len(rules) == len(DEFAULT_RULES) + 1
        engine = RelevanceEngine(rules)
        score, reasoning = engine.score(source("Tenant Protection Act"), domain("landlord-tenant-residential"))
        assert (score, reasoning) == (0.9, "BC tenancy statute")
