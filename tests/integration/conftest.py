"""Fixtures for integration tests.

Provides a credential store on disk, settings pointing at temporary
directories and a fake API that answers according to the credential used.
"""

import json

import pytest

from chatload.core.config import Settings


@pytest.fixture
def keys_file(tmp_path):
    """Credential store with five keys; key3 is rejected by the fake API."""
    path = tmp_path / "data" / "api_keys.json"
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {
                "api_keys": [
                    {"id": f"key{i}", "key": f"mor_integration_{i}", "description": f"Test key {i}"}
                    for i in range(1, 6)
                ]
            }
        )
    )
    return path


@pytest.fixture
def settings(tmp_path, keys_file):
    """Settings for a fast run against the fake API.

    Returns:
        Settings with L=2, K=3 and no pauses between exchanges.
    """
    return Settings(
        _env_file=None,
        base_url="https://api.example.com",
        api_keys_file=str(keys_file),
        results_dir=str(tmp_path / "results"),
        max_concurrent_requests=2,
        max_workers=4,
        exchanges_per_conversation=3,
        exchange_delay_min_sec=0,
        exchange_delay_max_sec=0,
        scenario_models=["model-a", "model-b"],
    )


@pytest.fixture
def fake_api(make_session, make_response, completion):
    """Session that rejects key3 and answers everyone else."""

    def responder(body, headers):
        if headers["Authorization"] == "mor_integration_3":
            return make_response({"error": {"message": "Invalid API key"}}, 401)
        return make_response(completion(f"answer to {body['messages'][1]['content']}"))

    return make_session(responder)
