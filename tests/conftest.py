"""Shared pytest fixtures for all test layers.

This module provides common test utilities and fixtures that are used
across both unit and integration tests.
"""

import json
import threading
from typing import Any

import pytest
import requests

from chatload.models.run import Credential


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, body: Any, status_code: int = 200) -> None:
        if isinstance(body, (dict, list)):
            self.content = json.dumps(body).encode()
        elif isinstance(body, str):
            self.content = body.encode()
        else:
            self.content = body or b""
        self.status_code = status_code
        self.encoding = "utf-8"

    def json(self) -> Any:
        return json.loads(self.content)


class FakeSession:
    """Thread-safe fake of ``requests.Session.post``.

    ``responder`` receives the JSON body and headers of each request and
    returns a FakeResponse or raises a ``requests`` exception.
    """

    def __init__(self, responder) -> None:
        self._responder = responder
        self._lock = threading.Lock()
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, json: Any = None, headers: Any = None, timeout: Any = None):
        with self._lock:
            self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._responder(json, headers)


def completion_body(content: str = "Hello!") -> dict[str, Any]:
    """A successful chat-completion response body."""
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


@pytest.fixture
def sample_credentials() -> list[Credential]:
    """Five credentials with distinct ids.

    Returns:
        Credentials in store order.
    """
    return [Credential(id=f"key{i}", key=f"mor_secret_value_{i:02d}") for i in range(1, 6)]


@pytest.fixture
def sample_credential() -> Credential:
    """Single credential for basic tests."""
    return Credential(id="key1", key="mor_0123456789abcdef")


@pytest.fixture
def ok_session() -> FakeSession:
    """Session that answers every request with a completion."""
    return FakeSession(lambda body, headers: FakeResponse(completion_body()))


@pytest.fixture
def failing_session() -> FakeSession:
    """Session whose every request fails to connect."""

    def refuse(body, headers):
        raise requests.exceptions.ConnectionError("Connection refused")

    return FakeSession(refuse)


@pytest.fixture
def make_session():
    """Factory for FakeSession objects around a responder callable."""
    return FakeSession


@pytest.fixture
def make_response():
    """Factory for FakeResponse objects."""
    return FakeResponse


@pytest.fixture
def completion():
    """Factory for successful completion bodies."""
    return completion_body
