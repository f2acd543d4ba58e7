"""Pre-flight aggregate payload size check."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from ..core.exceptions import PayloadTooLargeError
from ..core.logging import get_logger

logger = get_logger(__name__)


class HasByteSize(Protocol):
    @property
    def byte_size(self) -> int: ...


def check_payload_size(files: Iterable[HasByteSize], limit_bytes: int) -> int:
    """
    Reject a batch of files whose combined size exceeds ``limit_bytes``.

    This is the only place the aggregate limit is enforced; it runs before
    any encoding or provider call.

    Args:
        files: RawFiles or EncodedFiles
        limit_bytes: Inclusive ceiling

    Returns:
        The total size in bytes

    Raises:
        PayloadTooLargeError: If the total exceeds the limit
    """
    total_bytes = sum(f.byte_size for f in files)
    if total_bytes > limit_bytes:
        logger.warning(
            "payload_too_large",
            total_bytes=total_bytes,
            limit_bytes=limit_bytes,
        )
        raise PayloadTooLargeError(total_bytes=total_bytes, limit_bytes=limit_bytes)
    return total_bytes
