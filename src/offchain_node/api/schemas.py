from __future__ import annotations

"""Pydantic response schemas for the status API.

Keep this module intentionally small and stable.
"""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    ok: bool = True
    booted: bool = Field(..., description="True once offchain indexing has been reconciled")


class OffchainStatusResponse(BaseModel):
    ok: bool = True
    node_id: str
    role: str
    offchain_worker_enabled: bool
    offchain_indexing: Literal["Enabled", "Disabled"]
    history_incomplete: bool = Field(
        ...,
        description="A forced override changed indexing at some point; older offchain data may be incomplete",
    )
