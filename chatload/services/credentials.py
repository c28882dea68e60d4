"""Credential store and the read-only pool handed to a run.

The store is a JSON file of the form::

    {"api_keys": [{"id": ..., "key": ..., "description": ..., "created_at": ...,
                   "model": ...}]}

The load-test path only reads it. The provisioning flow appends to it, and
several provisioning workers may do so at once, so ``append`` takes an
exclusive lock around the whole read-modify-write.
"""

import fcntl
import os
import re
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from chatload.api.schemas import CredentialEntry, CredentialFile
from chatload.core.exceptions import ConfigError, CredentialStoreError
from chatload.core.logging import get_logger
from chatload.models.run import Credential

logger = get_logger(__name__)

# Credential ids name result directories, so each must be one plain path segment
_SAFE_ID = re.compile(r"[A-Za-z0-9_][A-Za-z0-9._-]*")


class CredentialPool:
    """Immutable, ordered collection of credentials owned by one run."""

    def __init__(self, credentials: Sequence[Credential]) -> None:
        self._credentials = tuple(credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials)

    def __getitem__(self, index: int) -> Credential:
        return self._credentials[index]

    @property
    def credentials(self) -> tuple[Credential, ...]:
        return self._credentials

    def take(self, count: int) -> "CredentialPool":
        """First ``count`` credentials (fewer if the pool is smaller)."""
        return CredentialPool(self._credentials[:count])

    def with_models(self, models: Sequence[str]) -> "CredentialPool":
        """Bind ``models[i]`` to the i-th credential, cycling through models.

        Args:
            models: Non-empty list of model names.

        Returns:
            New pool whose credentials carry the assigned models.
        """
        if not models:
            raise ValueError("with_models needs at least one model")
        return CredentialPool(
            [
                Credential(
                    id=credential.id,
                    key=credential.key,
                    model=models[i % len(models)],
                    description=credential.description,
                    created_at=credential.created_at,
                )
                for i, credential in enumerate(self._credentials)
            ]
        )

    def duplicate_ids(self) -> list[str]:
        """Credential ids that appear more than once, in first-seen order."""
        seen: set[str] = set()
        duplicates: list[str] = []
        for credential in self._credentials:
            if credential.id in seen and credential.id not in duplicates:
                duplicates.append(credential.id)
            seen.add(credential.id)
        return duplicates

    def unsafe_ids(self) -> list[str]:
        """Credential ids that cannot be used as a single directory name."""
        return [c.id for c in self._credentials if not _SAFE_ID.fullmatch(c.id)]

    def ensure_usable(self) -> None:
        """Check that every credential can address its own result directory.

        Raises:
            ConfigError: If an id repeats or is not a plain path segment.
        """
        unsafe = self.unsafe_ids()
        if unsafe:
            raise ConfigError(
                "Credential ids may only contain letters, digits, '.', '_' and '-'",
                details=[{"invalid_ids": unsafe}],
            )
        duplicates = self.duplicate_ids()
        if duplicates:
            raise ConfigError(
                "Credential ids must be unique within a run",
                details=[{"duplicate_ids": duplicates}],
            )


class CredentialStore:
    """File-backed credential store.

    Args:
        path: Location of the JSON store.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CredentialPool:
        """Load every credential in the store.

        Returns:
            CredentialPool in file order.

        Raises:
            CredentialStoreError: If the file is missing, invalid or empty.
        """
        document = self._read()
        if not document.api_keys:
            raise CredentialStoreError(
                f"No API keys found in {self._path}", path=str(self._path)
            )

        pool = CredentialPool([_to_credential(entry) for entry in document.api_keys])
        logger.info("Loaded API keys", count=len(pool), path=str(self._path))
        return pool

    def append(self, credential: Credential) -> int:
        """Append a credential under an exclusive lock.

        The store is created if it does not exist yet. The new document is
        written to a temporary file and moved into place, so readers never
        observe a partially written store.

        Args:
            credential: Credential to add.

        Returns:
            Number of credentials in the store after the append.
        """
        with self._exclusive_lock():
            if self._path.exists():
                document = self._read()
            else:
                document = CredentialFile()

            document.api_keys.append(
                CredentialEntry(
                    id=credential.id,
                    key=credential.key,
                    description=credential.description,
                    created_at=credential.created_at,
                    model=credential.model,
                )
            )
            self._write(document)
            total = len(document.api_keys)

        logger.info("Appended API key", credential_id=credential.id, total=total)
        return total

    @contextmanager
    def _exclusive_lock(self) -> Iterator[None]:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self) -> CredentialFile:
        if not self._path.is_file():
            raise CredentialStoreError(
                f"API keys file not found at {self._path}", path=str(self._path)
            )
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise CredentialStoreError(
                f"Cannot read API keys file {self._path}: {e}", path=str(self._path)
            ) from e
        try:
            return CredentialFile.model_validate_json(raw)
        except ValidationError as e:
            raise CredentialStoreError(
                f"Invalid API keys file {self._path}: {e.error_count()} error(s)",
                path=str(self._path),
            ) from e

    def _write(self, document: CredentialFile) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".api_keys.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(document.model_dump_json(indent=2, exclude_none=True))
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _to_credential(entry: CredentialEntry) -> Credential:
    return Credential(
        id=entry.id,
        key=entry.key,
        model=entry.model,
        description=entry.description,
        created_at=entry.created_at,
    )
