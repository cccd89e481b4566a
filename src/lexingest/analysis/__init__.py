"""Cross-domain relevance analysis."""
from .relevance import RELEVANCE_THRESHOLD, DomainLink, RelevanceEngine
from .rules import DEFAULT_RULES, ONTARIO_RULES, RULESET_VERSION, RelevanceRule, load_rules

__all__ = [
    "DEFAULT_RULES",
    "DomainLink",
    "ONTARIO_RULES",
    "RELEVANCE_THRESHOLD",
    "RULESET_VERSION",
    "RelevanceEngine",
    "RelevanceRule",
    "load_rules",
]
