"""Utility functions for the chat-completion load tester."""

from chatload.utils.prompts import DEFAULT_PROMPTS, PromptSource
from chatload.utils.text import mask_secret, natural_key, normalize_error

__all__ = ["DEFAULT_PROMPTS", "PromptSource", "mask_secret", "natural_key", "normalize_error"]
