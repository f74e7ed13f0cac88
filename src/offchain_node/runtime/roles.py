from __future__ import annotations

from enum import Enum


def _norm(raw: str) -> str:
    return str(raw or "").strip().replace("-", "").replace("_", "").lower()


class NodeRole(str, Enum):
    AUTHORITY = "authority"
    FULL = "full"
    LIGHT = "light"
    SENTRY = "sentry"

    @classmethod
    def parse(cls, raw: str) -> "NodeRole":
        norm = _norm(raw)
        for r in cls:
            if r.value == norm:
                return r
        raise ValueError(f"unknown node role {raw!r}; expected one of: {', '.join(r.value for r in cls)}")


class OffchainWorkerMode(str, Enum):
    ALWAYS = "Always"
    NEVER = "Never"
    WHEN_VALIDATING = "WhenValidating"

    @classmethod
    def parse(cls, raw: str) -> "OffchainWorkerMode":
        norm = _norm(raw)
        for m in cls:
            if m.value.lower() == norm:
                return m
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"unknown offchain worker mode {raw!r}; expected one of: {allowed}")


def is_validator(role: NodeRole) -> bool:
    return role is NodeRole.AUTHORITY


def offchain_workers_enabled(mode: OffchainWorkerMode, role: NodeRole) -> bool:
    """Whether offchain workers run on every imported block for this node."""
    if mode is OffchainWorkerMode.ALWAYS:
        return True
    if mode is OffchainWorkerMode.NEVER:
        return False
    return is_validator(role)
