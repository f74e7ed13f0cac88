# src/offchain_node/storage/columns.py
from __future__ import annotations

from enum import IntEnum


class Column(IntEnum):
    """Column ids of the node key-value store.

    Values are persisted; never renumber an existing column.
    """

    META = 0
    STATE = 1
    HEADER = 2
    BODY = 3
    OFFCHAIN = 4


class meta_keys:
    """Reserved keys inside Column.META."""

    TYPE = b"type"
    BEST_BLOCK = b"best"
    FINALIZED_BLOCK = b"final"
    GENESIS_HASH = b"gen"
    OFFCHAIN_INDEXING = b"offchain_indexing"
