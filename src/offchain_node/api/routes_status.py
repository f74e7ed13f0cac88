from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from offchain_node.api.schemas import HealthResponse, OffchainStatusResponse

router = APIRouter()


def _node(request: Request) -> Optional[Any]:
    return getattr(request.app.state, "node", None)


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    return HealthResponse(booted=_node(request) is not None)


@router.get("/offchain", response_model=OffchainStatusResponse)
def offchain_status(request: Request):
    """
    Resolved offchain settings of this node.

    Mounted under /v1 by app.py, so the full path is:
      GET /v1/offchain
    """
    node = _node(request)
    if node is None:
        return JSONResponse(
            status_code=503,
            content={"ok": False, "error": {"code": "not_booted", "message": "node runtime is not booted"}},
        )

    off = node.offchain
    return OffchainStatusResponse(
        node_id=node.config.node_id,
        role=node.role.value,
        offchain_worker_enabled=off.enabled,
        offchain_indexing=off.indexing.value,
        history_incomplete=off.history_incomplete,
    )
