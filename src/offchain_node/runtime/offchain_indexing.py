# src/offchain_node/runtime/offchain_indexing.py
"""Offchain indexing state reconciliation.

Runtime code may write into the node's offchain store during block import only
when offchain indexing is enabled. Whether it is enabled must stay stable
across restarts: flipping it silently leaves holes in (or stale references
to) indexed data for blocks that were already imported.

On every startup `reconcile()` compares the operator's desired state with the
record committed by the previous run, resolves it to ENABLED or DISABLED,
writes the resolved record back and returns it. It runs once, before block
import starts.

Persisted record (Column.META / meta_keys.OFFCHAIN_INDEXING):
  - 2 bytes [enabled, needs_warning], each 0x00 or 0x01 (written)
  - 1 byte  [enabled] from older nodes (read only, needs_warning=False)

needs_warning is a latch. It is set when a FORCE_* override flips the stored
value and is never cleared here; every later start re-emits the
history-incomplete warning.

A record that cannot be decoded is treated as absent (first start) and a
warning is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from offchain_node.runtime.errors import DecodeError, ResyncRequired
from offchain_node.storage.columns import Column, meta_keys
from offchain_node.storage.kv import MetadataStore
from offchain_node.structured_logging import log_event

log = logging.getLogger("offchain_node.indexing")


class DesiredState(str, Enum):
    """Operator intent for the offchain indexing API."""

    # Follow the validator role on first start, otherwise keep the stored value.
    DEFAULT = "Default"
    # Only succeeds on first start or when already enabled.
    ENABLE = "Enable"
    # Only succeeds on first start or when already disabled.
    DISABLE = "Disable"
    # Enable regardless of possibly incomplete offchain history.
    FORCE_ENABLE = "ForceEnable"
    # Disable regardless of possibly incomplete offchain history.
    FORCE_DISABLE = "ForceDisable"

    @classmethod
    def parse(cls, raw: str) -> "DesiredState":
        """Case-insensitive lookup by value ("forceenable", "Force-Enable", ...)."""
        norm = str(raw or "").strip().replace("-", "").replace("_", "").lower()
        for s in cls:
            if s.value.lower() == norm:
                return s
        allowed = ", ".join(s.value for s in cls)
        raise ValueError(f"unknown offchain indexing state {raw!r}; expected one of: {allowed}")


class ResolvedIndexingState(str, Enum):
    """Outcome of reconciliation. Only these two values reach block import."""

    ENABLED = "Enabled"
    DISABLED = "Disabled"

    @classmethod
    def from_bool(cls, enabled: bool) -> "ResolvedIndexingState":
        return cls.ENABLED if enabled else cls.DISABLED

    @property
    def is_enabled(self) -> bool:
        return self is ResolvedIndexingState.ENABLED


@dataclass(frozen=True)
class IndexingConfig:
    state: DesiredState = DesiredState.DEFAULT
    is_validator: bool = False


@dataclass(frozen=True)
class PersistedRecord:
    enabled: bool
    needs_warning: bool = False


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_record(rec: PersistedRecord) -> bytes:
    return bytes((1 if rec.enabled else 0, 1 if rec.needs_warning else 0))


def decode_record(raw: bytes) -> PersistedRecord:
    data = bytes(raw)
    if len(data) not in (1, 2):
        raise DecodeError(reason="offchain indexing record has unexpected length", details={"length": len(data)})
    for b in data:
        if b not in (0, 1):
            raise DecodeError(reason="offchain indexing record holds a non-boolean byte", details={"byte": b})
    if len(data) == 1:
        return PersistedRecord(enabled=data[0] == 1, needs_warning=False)
    return PersistedRecord(enabled=data[0] == 1, needs_warning=data[1] == 1)


def read_record(store: MetadataStore) -> Optional[PersistedRecord]:
    """Load the committed record. Raises DecodeError on corrupt bytes."""
    raw = store.get(Column.META, meta_keys.OFFCHAIN_INDEXING)
    if raw is None:
        return None
    return decode_record(raw)


def write_record(store: MetadataStore, rec: PersistedRecord) -> None:
    store.put_in_transaction(Column.META, meta_keys.OFFCHAIN_INDEXING, encode_record(rec))


# ---------------------------------------------------------------------------
# Transition tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Accept:
    enabled: bool
    sets_latch: bool = False


@dataclass(frozen=True)
class _Reject:
    reason: str


_Outcome = Union[_Accept, _Reject]

_REQUIRES_ENABLED = (
    "The DB requires indexing to be enabled. Start a separate DB or use ForceDisable, "
    "but be aware that re-enabling will require re-sync"
)
_RESYNC_ON_ENABLE = "Re-sync required due to config change of offchain indexing"

# None follows the validator role.
_FIRST_START: Dict[DesiredState, Optional[bool]] = {
    DesiredState.DEFAULT: None,
    DesiredState.ENABLE: True,
    DesiredState.FORCE_ENABLE: True,
    DesiredState.DISABLE: False,
    DesiredState.FORCE_DISABLE: False,
}

# (previously enabled, desired) -> outcome
_TRANSITIONS: Dict[Tuple[bool, DesiredState], _Outcome] = {
    (True, DesiredState.DISABLE): _Reject(_REQUIRES_ENABLED),
    (False, DesiredState.ENABLE): _Reject(_RESYNC_ON_ENABLE),
    (True, DesiredState.ENABLE): _Accept(True),
    (True, DesiredState.FORCE_ENABLE): _Accept(True),
    (False, DesiredState.DISABLE): _Accept(False),
    (False, DesiredState.FORCE_DISABLE): _Accept(False),
    (True, DesiredState.FORCE_DISABLE): _Accept(False, sets_latch=True),
    (False, DesiredState.FORCE_ENABLE): _Accept(True, sets_latch=True),
    (True, DesiredState.DEFAULT): _Accept(True),
    (False, DesiredState.DEFAULT): _Accept(False),
}


def _check_tables() -> None:
    missing_first = [s.value for s in DesiredState if s not in _FIRST_START]
    missing = [f"({p}, {s.value})" for p in (True, False) for s in DesiredState if (p, s) not in _TRANSITIONS]
    if missing_first or missing:
        raise RuntimeError(
            "offchain indexing transition tables are incomplete: "
            f"first_start={missing_first} transitions={missing}"
        )


_check_tables()


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def resolve_record(prev: Optional[PersistedRecord], config: IndexingConfig) -> PersistedRecord:
    """Pure decision step. Raises ResyncRequired on an illegal transition."""
    if prev is None:
        first = _FIRST_START[config.state]
        enabled = bool(config.is_validator) if first is None else first
        return PersistedRecord(enabled=enabled, needs_warning=False)

    outcome = _TRANSITIONS[(prev.enabled, config.state)]
    if isinstance(outcome, _Reject):
        raise ResyncRequired(
            reason=outcome.reason,
            details={"stored_enabled": prev.enabled, "desired": config.state.value},
        )
    return PersistedRecord(
        enabled=outcome.enabled,
        needs_warning=prev.needs_warning or outcome.sets_latch,
    )


def _load_prev(store: MetadataStore) -> Optional[PersistedRecord]:
    try:
        return read_record(store)
    except DecodeError as e:
        log_event(
            log,
            "offchain_indexing_record_corrupt",
            level=logging.WARNING,
            reason=e.reason,
            details=e.details,
            action="treated_as_first_start",
        )
        return None


def reconcile_record(store: MetadataStore, config: IndexingConfig) -> PersistedRecord:
    """Resolve, persist and return the full record (state plus latch)."""
    prev = _load_prev(store)

    if prev is not None and prev.needs_warning:
        log_event(
            log,
            "offchain_indexing_history_incomplete",
            level=logging.WARNING,
            message="historical offchain data may be incomplete",
            stored_enabled=prev.enabled,
        )

    rec = resolve_record(prev, config)

    if prev is not None and rec.enabled != prev.enabled:
        log_event(
            log,
            "offchain_indexing_forced",
            level=logging.WARNING,
            desired=config.state.value,
            from_enabled=prev.enabled,
            to_enabled=rec.enabled,
        )

    write_record(store, rec)

    log_event(
        log,
        "offchain_indexing_resolved",
        desired=config.state.value,
        is_validator=bool(config.is_validator),
        first_start=prev is None,
        enabled=rec.enabled,
        needs_warning=rec.needs_warning,
    )
    return rec


def reconcile(store: MetadataStore, config: IndexingConfig) -> ResolvedIndexingState:
    """Reconcile the desired indexing state against the committed one.

    Returns only after the resolved record is durably written. Raises
    ResyncRequired (nothing written) or StoreError.
    """
    return ResolvedIndexingState.from_bool(reconcile_record(store, config).enabled)
