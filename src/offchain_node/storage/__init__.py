# src/offchain_node/storage/__init__.py
"""
Node-local persistence.

These modules are intentionally small and fail-closed:
- columns: reserved column ids and metadata keys,
- kv: the store contract the runtime depends on,
- sqlite_db: the durable SQLite-backed store,
- memory_store: an in-process store for tests and tooling.
"""
