from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from offchain_node.api.routes_status import router as status_router
from offchain_node.runtime.node_boot import boot_node as _boot_node
from offchain_node.runtime.node_config import load_node_config


def boot_node():
    """Boot the node runtime for the API process.

    This wrapper exists so tests can monkeypatch `offchain_node.api.app.boot_node`
    without reaching into runtime modules.
    """
    return _boot_node(load_node_config())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): reconcile offchain indexing on lifespan startup and
        attach app.state.node. ResyncRequired / StoreError abort startup, so
        the process never serves with an unresolved indexing state. Nothing
        is locked or opened until the app actually starts.
      - False: keep lightweight for unit tests.
    """
    mode = os.environ.get("OCN_MODE", "prod").strip().lower()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        if boot_runtime:
            app.state.node = boot_node()
        try:
            yield
        finally:
            node = getattr(app.state, "node", None)
            app.state.node = None
            if node is not None:
                node.close()

    if mode == "prod":
        app = FastAPI(
            title="Offchain Node API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="Offchain Node API", lifespan=_lifespan)

    app.state.node = None

    app.include_router(status_router, prefix="/v1", tags=["status"])
    return app
