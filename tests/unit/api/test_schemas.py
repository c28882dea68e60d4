"""Unit tests for request and result-document schemas.

Tests cover the request body shape, credential store parsing and
validation of persisted result records.
"""

import pytest
from pydantic import ValidationError

from chatload.api.schemas import (
    ChatCompletionRequest,
    CredentialFile,
    ExchangeRecord,
    RunConfigRecord,
)


class TestChatCompletionRequest:
    """Tests for ChatCompletionRequest."""

    def test_build(self):
        """build produces a system and a user message, never streaming."""
        request = ChatCompletionRequest.build("llama-3.1-8b", "You are a helpful assistant.", "Hi")

        assert request.model_dump() == {
            "model": "llama-3.1-8b",
            "messages": [
                {"role": "system", "content": "You are a helpful assistant."},
                {"role": "user", "content": "Hi"},
            ],
            "stream": False,
        }

    def test_empty_model_rejected(self):
        """An empty model name is invalid."""
        with pytest.raises(ValidationError):
            ChatCompletionRequest.build("", "sys", "Hi")

    def test_invalid_role(self):
        """Only system, user and assistant roles exist."""
        with pytest.raises(ValidationError):
            ChatCompletionRequest(model="m", messages=[{"role": "tool", "content": "x"}])


class TestCredentialFile:
    """Tests for the credential store document."""

    def test_parse(self):
        """Entries keep their metadata; unknown fields are tolerated."""
        document = CredentialFile.model_validate(
            {
                "api_keys": [
                    {
                        "id": "key1",
                        "key": "mor_abc",
                        "description": "Test key 1",
                        "created_at": "2025-01-01T00:00:00Z",
                        "owner": "ops",
                    }
                ]
            }
        )

        entry = document.api_keys[0]
        assert entry.id == "key1"
        assert entry.model is None
        assert entry.created_at == "2025-01-01T00:00:00Z"

    def test_missing_key_rejected(self):
        """Entries without a key are invalid."""
        with pytest.raises(ValidationError):
            CredentialFile.model_validate({"api_keys": [{"id": "key1"}]})

    def test_missing_list_is_empty(self):
        """A document without api_keys parses to an empty list."""
        assert CredentialFile.model_validate({}).api_keys == []


class TestExchangeRecord:
    """Tests for ExchangeRecord."""

    def _valid(self, **overrides):
        data = {
            "conversation_id": "conv_1",
            "exchange_index": 1,
            "prompt": "Hi",
            "model": "default",
            "outcome": "success",
            "status": 0,
            "started_at": 100.0,
            "duration": 1.5,
            "response": {"choices": []},
        }
        data.update(overrides)
        return data

    def test_valid_record(self):
        """A complete record parses and derives its end time."""
        record = ExchangeRecord.model_validate(self._valid())

        assert record.is_success
        assert record.finished_at == 101.5

    def test_unknown_outcome(self):
        """Outcome tags outside the three kinds are rejected."""
        with pytest.raises(ValidationError):
            ExchangeRecord.model_validate(self._valid(outcome="maybe"))

    def test_index_is_one_based(self):
        """Exchange index 0 is invalid."""
        with pytest.raises(ValidationError):
            ExchangeRecord.model_validate(self._valid(exchange_index=0))

    def test_negative_duration(self):
        """Durations cannot be negative."""
        with pytest.raises(ValidationError):
            ExchangeRecord.model_validate(self._valid(duration=-1))


class TestRunConfigRecord:
    """Tests for RunConfigRecord."""

    def test_verbose_is_flag(self):
        """verbose_output is stored as 0 or 1."""
        with pytest.raises(ValidationError):
            RunConfigRecord(
                timestamp="2025-01-01T12:00:00",
                api_endpoint="http://x",
                max_concurrent_requests=1,
                verbose_output=2,
            )
