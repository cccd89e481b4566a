"""Slot definitions inferred by the model.

The model speaks camelCase JSON; fields accept either the alias or the
Python name.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .legal import utcnow


class SlotType(str, Enum):
    INPUT = "input"
    CALCULATED = "calculated"
    OUTCOME = "outcome"


class Importance(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class LegalBasis(_CamelModel):
    source_id: str = ""
    provision_ids: list[str] = Field(default_factory=list)
    citation_text: str = ""
    relevant_excerpt: str = ""


class SlotAIMetadata(_CamelModel):
    generated_at: datetime = Field(default_factory=utcnow)
    confidence: float = Field(ge=0.0, le=1.0)
    model: str = ""
    human_reviewed: bool = False


class SlotDefinition(_CamelModel):
    """A structured fact template that drives a downstream interview."""

    slot_key: str = Field(min_length=1)
    slot_name: str = Field(min_length=1)
    description: str = ""
    slot_type: SlotType
    data_type: str = Field(min_length=1)
    importance: Importance
    required_for: list[str] = Field(default_factory=list)
    skip_if: Any = None
    legal_basis: LegalBasis = Field(default_factory=LegalBasis)
    validation: dict[str, Any] = Field(default_factory=dict)
    ui: dict[str, Any] = Field(default_factory=dict)
    calculation: dict[str, Any] | None = None
    ai: SlotAIMetadata
    version: int = 1

    @field_validator("slot_type", mode="before")
    @classmethod
    def _lower_slot_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("importance", mode="before")
    @classmethod
    def _upper_importance(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _derived_slots_need_calculation(self) -> SlotDefinition:
        if self.slot_type in (SlotType.CALCULATED, SlotType.OUTCOME) and not self.calculation:
            raise ValueError(f"{self.slot_key}: Missing calculation config")
        return self

    @property
    def confidence(self) -> float:
        return self.ai.confidence
