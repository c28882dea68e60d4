"""Unit tests for the credential store and pool."""

import json
import threading

import pytest

from chatload.core.exceptions import ConfigError, CredentialStoreError
from chatload.models.run import Credential
from chatload.services.credentials import CredentialPool, CredentialStore


@pytest.fixture
def keys_file(tmp_path, write_json):
    """Credential store with three keys."""
    return write_json(
        tmp_path / "api_keys.json",
        {
            "api_keys": [
                {"id": "key1", "key": "mor_aaaaaaaaaaaa", "description": "Test key 1"},
                {"id": "key2", "key": "mor_bbbbbbbbbbbb", "model": "llama-3.1-70b"},
                {"id": "key3", "key": "mor_cccccccccccc", "created_at": "2025-01-01T00:00:00Z"},
            ]
        },
    )


class TestCredentialStoreLoad:
    """Tests for CredentialStore.load."""

    def test_load_in_file_order(self, keys_file):
        """Credentials keep file order and metadata."""
        pool = CredentialStore(keys_file).load()

        assert [c.id for c in pool] == ["key1", "key2", "key3"]
        assert pool[1].model == "llama-3.1-70b"
        assert pool[0].description == "Test key 1"

    def test_missing_file(self, tmp_path):
        """A missing store is fatal."""
        with pytest.raises(CredentialStoreError, match="not found"):
            CredentialStore(tmp_path / "absent.json").load()

    def test_empty_store(self, tmp_path, write_json):
        """A store without keys is fatal."""
        path = write_json(tmp_path / "keys.json", {"api_keys": []})

        with pytest.raises(CredentialStoreError, match="No API keys"):
            CredentialStore(path).load()

    def test_malformed_store(self, tmp_path):
        """Invalid JSON is fatal."""
        path = tmp_path / "keys.json"
        path.write_text("{not json")

        with pytest.raises(CredentialStoreError, match="Invalid"):
            CredentialStore(path).load()


class TestCredentialStoreAppend:
    """Tests for CredentialStore.append."""

    def test_append_creates_store(self, tmp_path):
        """Appending to a missing store creates it."""
        store = CredentialStore(tmp_path / "data" / "keys.json")

        total = store.append(Credential(id="key1", key="mor_new"))

        assert total == 1
        assert store.load()[0].key == "mor_new"

    def test_append_preserves_existing(self, keys_file):
        """Existing entries survive an append."""
        store = CredentialStore(keys_file)

        store.append(Credential(id="key4", key="mor_dddd", description="added"))

        assert [c.id for c in store.load()] == ["key1", "key2", "key3", "key4"]

    def test_concurrent_appends_lose_nothing(self, tmp_path):
        """Parallel appenders never overwrite each other."""
        store = CredentialStore(tmp_path / "keys.json")

        threads = [
            threading.Thread(target=store.append, args=(Credential(id=f"k{i}", key=f"mor_{i}"),))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = {entry["id"] for entry in json.loads(store.path.read_text())["api_keys"]}
        assert ids == {f"k{i}" for i in range(20)}


class TestCredentialPool:
    """Tests for CredentialPool."""

    def test_take(self, sample_credentials):
        """take returns the first n credentials, or all when fewer exist."""
        pool = CredentialPool(sample_credentials)

        assert [c.id for c in pool.take(2)] == ["key1", "key2"]
        assert len(pool.take(50)) == 5

    def test_with_models_cycles(self, sample_credentials):
        """Models are assigned round-robin."""
        pool = CredentialPool(sample_credentials).with_models(["a", "b"])

        assert [c.model for c in pool] == ["a", "b", "a", "b", "a"]
        assert pool[0].key == sample_credentials[0].key

    def test_with_models_requires_models(self, sample_credentials):
        """An empty model list is rejected."""
        with pytest.raises(ValueError):
            CredentialPool(sample_credentials).with_models([])

    def test_duplicate_ids(self):
        """Repeated ids are reported once each."""
        pool = CredentialPool(
            [Credential(id=i, key="x") for i in ["a", "b", "a", "c", "b", "a"]]
        )

        assert pool.duplicate_ids() == ["a", "b"]

    def test_unsafe_ids(self):
        """Ids that would escape or nest result directories are reported."""
        ids = ["key_1", "team/a", "../x", "..", ".env", "key-2.v1", "a b"]
        pool = CredentialPool([Credential(id=i, key="x") for i in ids])

        assert pool.unsafe_ids() == ["team/a", "../x", "..", ".env", "a b"]

    def test_ensure_usable(self, sample_credentials):
        """A pool of plain, distinct ids passes; a bad id is a config error."""
        CredentialPool(sample_credentials).ensure_usable()

        with pytest.raises(ConfigError) as exc_info:
            CredentialPool([Credential(id="a/b", key="x")]).ensure_usable()
        assert exc_info.value.details == [{"invalid_ids": ["a/b"]}]

    def test_key_not_in_repr(self):
        """The raw secret never appears in the repr."""
        credential = Credential(id="key1", key="mor_topsecret")

        assert "mor_topsecret" not in repr(credential)
        assert credential.masked_key == "mor_topsec..."
