from __future__ import annotations

from offchain_node.runtime.offchain_indexing import ResolvedIndexingState
from offchain_node.storage.columns import Column
from offchain_node.storage.kv import MetadataStore, StoreTransaction


class OffchainIndexingApi:
    """Per-block handle through which runtime code writes offchain index data.

    Built only from a ResolvedIndexingState, so it cannot exist before
    reconciliation. When indexing is disabled every write is dropped.
    """

    def __init__(self, *, store: MetadataStore, indexing: ResolvedIndexingState) -> None:
        self._store = store
        self._indexing = indexing
        self._tx = StoreTransaction()
        self.dropped = 0

    @property
    def enabled(self) -> bool:
        return self._indexing.is_enabled

    @property
    def pending(self) -> int:
        return len(self._tx)

    def set(self, key: bytes, value: bytes) -> None:
        if not self.enabled:
            self.dropped += 1
            return
        self._tx.put(Column.OFFCHAIN, key, value)

    def clear(self, key: bytes) -> None:
        if not self.enabled:
            self.dropped += 1
            return
        self._tx.delete(Column.OFFCHAIN, key)

    def commit(self) -> int:
        """Write buffered changes in one transaction; returns how many were applied."""
        tx, self._tx = self._tx, StoreTransaction()
        self._store.commit(tx)
        return len(tx)
