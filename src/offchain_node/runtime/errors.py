from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ReconcileError(Exception):
    """Canonical error type for offchain indexing reconciliation failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class ResyncRequired(ReconcileError):
    """Desired indexing state conflicts with already imported history.

    Fatal: node startup must abort with `reason`.
    """

    code: str = "resync_required"
    reason: str = ""


@dataclass
class StoreError(ReconcileError):
    """Underlying persistence failure. Fatal, propagated unchanged."""

    code: str = "store_error"
    reason: str = ""


@dataclass
class DecodeError(ReconcileError):
    """Persisted offchain indexing record has an unknown shape."""

    code: str = "decode_error"
    reason: str = ""
