# src/offchain_node/storage/kv.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

# (column, key, value); value None means delete.
KvOp = Tuple[int, bytes, Optional[bytes]]


@dataclass
class StoreTransaction:
    """Ordered batch of puts/deletes committed atomically by a store."""

    ops: List[KvOp] = field(default_factory=list)

    def put(self, column: int, key: bytes, value: bytes) -> None:
        self.ops.append((int(column), bytes(key), bytes(value)))

    def delete(self, column: int, key: bytes) -> None:
        self.ops.append((int(column), bytes(key), None))

    def __len__(self) -> int:
        return len(self.ops)


class MetadataStore(Protocol):
    """Store contract consumed by the offchain indexing reconciler.

    Implementations raise StoreError on I/O failure.
    """

    def get(self, column: int, key: bytes) -> Optional[bytes]: ...

    def commit(self, tx: StoreTransaction) -> None: ...

    def put_in_transaction(self, column: int, key: bytes, value: bytes) -> None: ...
