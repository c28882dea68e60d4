"""Fixtures specific to unit tests.

Provides fake dependencies and test data for isolated unit testing.
"""

import json
from pathlib import Path

import pytest

from chatload.models.outcome import ApplicationError, Success, TransportError
from chatload.models.run import Exchange


@pytest.fixture
def make_exchange():
    """Factory for Exchange objects with sensible defaults."""

    def factory(
        index: int = 1,
        outcome=None,
        conversation_id: str = "conv_1",
        model: str = "default",
        started_at: float = 1000.0,
        duration: float = 0.5,
    ) -> Exchange:
        return Exchange(
            conversation_id=conversation_id,
            index=index,
            prompt="What is machine learning?",
            model=model,
            started_at=started_at,
            duration=duration,
            outcome=outcome or Success(response_body={"choices": []}),
            request={"model": model, "messages": [], "stream": False},
        )

    return factory


@pytest.fixture
def outcomes():
    """One outcome of each kind."""
    return {
        "success": Success(response_body={"choices": [{"message": {"content": "hi"}}]}),
        "application": ApplicationError(
            message="Invalid API key", response_body={"error": {"message": "Invalid API key"}}
        ),
        "transport": TransportError(code=7, description="Failed to connect"),
    }


@pytest.fixture
def write_json():
    """Write a JSON document, creating parent directories."""

    def writer(path: Path, document) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return writer
