"""Model clients, prompts and response parsing."""
from .client import AnthropicClient, LLMClient, MockLLMClient, complete_with_deadline
from .parsing import close_truncated_array, extract_json_array, extract_json_object
from .prompts import SLOT_BATCH_PROMPT, SLOT_SYSTEM_PROMPT, STATUTE_EXTRACTION_PROMPT

__all__ = [
    "AnthropicClient",
    "LLMClient",
    "MockLLMClient",
    "SLOT_BATCH_PROMPT",
    "SLOT_SYSTEM_PROMPT",
    "STATUTE_EXTRACTION_PROMPT",
    "close_truncated_array",
    "complete_with_deadline",
    "extract_json_array",
    "extract_json_object",
]
