"""Text helpers for masking secrets, ordering result files and keying errors."""

import re

_DIGITS = re.compile(r"(\d+)")


def mask_secret(secret: str, visible: int = 10) -> str:
    """Mask a credential for logs and persisted summaries.

    Args:
        secret: Raw credential.
        visible: Number of leading characters to keep.

    Returns:
        The first ``visible`` characters followed by ``...``.
    """
    return f"{secret[:visible]}..."


def normalize_error(message: str) -> str:
    """Normalize an error message for error-pattern bucketing.

    Strips leading/trailing whitespace and collapses internal runs of
    whitespace. Case is preserved: API messages are compared as written.

    Args:
        message: Raw error message.

    Returns:
        Normalized message.
    """
    return re.sub(r"\s+", " ", message.strip())


def natural_key(name: str) -> list[int | str]:
    """Sort key that orders ``batch_2`` before ``batch_10``.

    Args:
        name: File or directory name.

    Returns:
        List alternating text and integer chunks.
    """
    return [int(part) if part.isdigit() else part for part in _DIGITS.split(name)]
