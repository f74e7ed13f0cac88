# src/offchain_node/runtime/offchain_config.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from offchain_node.runtime.offchain_indexing import (
    DesiredState,
    IndexingConfig,
    PersistedRecord,
    ResolvedIndexingState,
    reconcile_record,
)
from offchain_node.runtime.roles import NodeRole, OffchainWorkerMode, is_validator, offchain_workers_enabled
from offchain_node.storage.kv import MetadataStore

Json = Dict[str, Any]


@dataclass(frozen=True)
class OffchainWorkerParams:
    """Operator-facing offchain settings, before reconciliation."""

    worker_mode: OffchainWorkerMode = OffchainWorkerMode.WHEN_VALIDATING
    indexing: DesiredState = DesiredState.DEFAULT

    @classmethod
    def from_strings(cls, *, worker_mode: str, indexing: str) -> "OffchainWorkerParams":
        return cls(worker_mode=OffchainWorkerMode.parse(worker_mode), indexing=DesiredState.parse(indexing))

    def worker_enabled(self, role: NodeRole) -> bool:
        return offchain_workers_enabled(self.worker_mode, role)

    def indexing_config(self, role: NodeRole) -> IndexingConfig:
        return IndexingConfig(state=self.indexing, is_validator=is_validator(role))


@dataclass(frozen=True)
class OffchainWorkerConfig:
    """Resolved offchain settings handed to block import."""

    enabled: bool
    indexing: ResolvedIndexingState
    history_incomplete: bool = False

    @property
    def indexing_enabled(self) -> bool:
        return self.indexing.is_enabled

    def to_json(self) -> Json:
        return {
            "offchain_worker_enabled": bool(self.enabled),
            "offchain_indexing": self.indexing.value,
            "history_incomplete": bool(self.history_incomplete),
        }


def configure_offchain(store: MetadataStore, params: OffchainWorkerParams, role: NodeRole) -> OffchainWorkerConfig:
    """Reconcile indexing against `store` and combine it with the worker flag."""
    rec: PersistedRecord = reconcile_record(store, params.indexing_config(role))
    return OffchainWorkerConfig(
        enabled=params.worker_enabled(role),
        indexing=ResolvedIndexingState.from_bool(rec.enabled),
        history_incomplete=rec.needs_warning,
    )
