"""Slot generation and batch orchestration."""
from .batch import BatchSlotOrchestrator, batch_key, create_batches
from .slots import SlotGenerator, average_confidence

__all__ = [
    "BatchSlotOrchestrator",
    "SlotGenerator",
    "average_confidence",
    "batch_key",
    "create_batches",
]
