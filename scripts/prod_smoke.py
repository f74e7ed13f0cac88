#!/usr/bin/env python3

"""Production-ish smoke test for the offchain node startup path.

It verifies, on a fresh SQLite db:
  - an authority node boots with offchain indexing enabled
  - the FastAPI app boots and serves /v1/health + /v1/offchain
  - a conflicting restart (Disable after Enable) is refused
  - ForceDisable succeeds and latches the history warning

Usage:
  python3 scripts/prod_smoke.py
"""

from __future__ import annotations

import dataclasses
import os
import tempfile

from fastapi.testclient import TestClient

from offchain_node.api import app as api_app
from offchain_node.runtime.errors import ResyncRequired
from offchain_node.runtime.node_boot import boot_node
from offchain_node.runtime.node_config import default_node_config


def main() -> int:
    with tempfile.TemporaryDirectory(prefix="ocn-smoke-") as td:
        base = dataclasses.replace(
            default_node_config(),
            node_id="smoke-node",
            mode="dev",
            role="authority",
            db_path=os.path.join(td, "node.db"),
            lock_path=os.path.join(td, "node.lock"),
        )

        api_app.boot_node = lambda: boot_node(base)  # type: ignore[assignment]
        with TestClient(api_app.create_app(boot_runtime=True)) as client:
            r = client.get("/v1/health")
            assert r.status_code == 200 and r.json().get("booted") is True, r.text
            r = client.get("/v1/offchain")
            assert r.status_code == 200 and r.json().get("offchain_indexing") == "Enabled", r.text

        try:
            boot_node(dataclasses.replace(base, offchain_indexing="Disable")).close()
        except ResyncRequired as e:
            print(f"conflicting restart refused: {e.reason}")
        else:
            raise RuntimeError("Disable after Enable must require a re-sync")

        node = boot_node(dataclasses.replace(base, offchain_indexing="ForceDisable"))
        try:
            assert not node.offchain.indexing_enabled
            assert node.offchain.history_incomplete
        finally:
            node.close()

    print("smoke ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
