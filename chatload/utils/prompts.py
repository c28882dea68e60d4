"""Prompt sources for conversations and scenarios."""

import random
from collections.abc import Sequence

DEFAULT_PROMPTS: tuple[str, ...] = (
    "Tell me about artificial intelligence",
    "What's the weather like today?",
    "Explain quantum computing",
    "How do I bake a chocolate cake?",
    "What are the benefits of exercise?",
    "Tell me a joke",
    "What's the capital of France?",
    "Explain blockchain technology",
    "How do I learn to code?",
    "What is machine learning?",
)

SCENARIO_PROMPT = "Tell me about artificial intelligence in one sentence."


class PromptSource:
    """Draws conversation prompts from a fixed pool.

    Sampling is with replacement and uses a non-cryptographic generator,
    so a seeded ``random.Random`` makes selections reproducible.
    """

    def __init__(
        self,
        prompts: Sequence[str] = DEFAULT_PROMPTS,
        rng: random.Random | None = None,
    ) -> None:
        if not prompts:
            raise ValueError("PromptSource needs at least one prompt")
        self._prompts = tuple(prompts)
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._prompts)

    def sample(self, count: int) -> list[str]:
        """Pick ``count`` prompts with replacement."""
        if count < 0:
            raise ValueError("count must be >= 0")
        return [self._rng.choice(self._prompts) for _ in range(count)]
