# src/offchain_node/runtime/node_boot.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from offchain_node.runtime.node_config import NodeConfig, load_node_config
from offchain_node.runtime.offchain_api import OffchainIndexingApi
from offchain_node.runtime.offchain_config import OffchainWorkerConfig, configure_offchain
from offchain_node.runtime.roles import NodeRole
from offchain_node.runtime.single_writer import SingleWriterLock
from offchain_node.storage.kv import MetadataStore
from offchain_node.storage.sqlite_db import SqliteDB, SqliteMetaStore
from offchain_node.structured_logging import log_event

log = logging.getLogger("offchain_node.boot")


@dataclass
class NodeRuntime:
    config: NodeConfig
    role: NodeRole
    store: MetadataStore
    offchain: OffchainWorkerConfig
    lock: Optional[SingleWriterLock] = None

    def offchain_indexing_api(self) -> OffchainIndexingApi:
        """Fresh indexing handle for one block import."""
        return OffchainIndexingApi(store=self.store, indexing=self.offchain.indexing)

    def close(self) -> None:
        if self.lock is not None:
            self.lock.release()
            self.lock = None


def boot_node(cfg: Optional[NodeConfig] = None) -> NodeRuntime:
    """
    Bring the node up to the point where block import may start.

    Order matters: the single-writer lock is taken before the store is opened,
    and offchain indexing is reconciled before any OffchainIndexingApi can be
    handed out. Any failure (ResyncRequired, StoreError, ValueError) releases
    the lock and propagates; the caller must not start block import.
    """
    c = cfg or load_node_config()
    role = c.node_role
    params = c.offchain_params()

    lock = SingleWriterLock(c.lock_path)
    lock.acquire()
    try:
        store = SqliteMetaStore(db=SqliteDB(path=c.db_path))
        offchain = configure_offchain(store, params, role)
    except Exception:
        lock.release()
        raise

    log_event(
        log,
        "node_booted",
        node_id=c.node_id,
        role=role.value,
        db_path=c.db_path,
        **offchain.to_json(),
    )
    return NodeRuntime(config=c, role=role, store=store, offchain=offchain, lock=lock)
