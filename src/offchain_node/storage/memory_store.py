from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from offchain_node.storage.kv import StoreTransaction


class MemoryMetaStore:
    """In-process store with the same contract as SqliteMetaStore.

    Commits apply all ops under one lock, so readers never see half a
    transaction.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[Tuple[int, bytes], bytes] = {}
        self.commits = 0

    def get(self, column: int, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get((int(column), bytes(key)))

    def commit(self, tx: StoreTransaction) -> None:
        if not tx.ops:
            return
        with self._lock:
            for column, key, value in tx.ops:
                if value is None:
                    self._data.pop((column, key), None)
                else:
                    self._data[(column, key)] = value
            self.commits += 1

    def put_in_transaction(self, column: int, key: bytes, value: bytes) -> None:
        tx = StoreTransaction()
        tx.put(column, key, value)
        self.commit(tx)

    def items(self, column: int) -> Dict[bytes, bytes]:
        with self._lock:
            return {k: v for (c, k), v in self._data.items() if c == int(column)}
