# src/offchain_node/runtime/node_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from offchain_node.runtime.offchain_config import OffchainWorkerParams
from offchain_node.runtime.offchain_indexing import DesiredState
from offchain_node.runtime.roles import NodeRole, OffchainWorkerMode

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class NodeConfig:
    node_id: str
    mode: str  # "dev" | "testnet" | "prod"
    role: str  # NodeRole value

    db_path: str
    lock_path: str

    # Offchain settings as the operator wrote them (case-insensitive).
    offchain_worker: str
    offchain_indexing: str

    api_host: str
    api_port: int

    log_level: str

    @property
    def node_role(self) -> NodeRole:
        return NodeRole.parse(self.role)

    def offchain_params(self) -> OffchainWorkerParams:
        return OffchainWorkerParams.from_strings(worker_mode=self.offchain_worker, indexing=self.offchain_indexing)


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_node_config(cfg: NodeConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.node_id, str) or not cfg.node_id.strip():
        raise ValueError("node_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    # Each of these raises ValueError naming the allowed values.
    NodeRole.parse(cfg.role)
    OffchainWorkerMode.parse(cfg.offchain_worker)
    DesiredState.parse(cfg.offchain_indexing)

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    for name, p in (("db_path", cfg.db_path), ("lock_path", cfg.lock_path)):
        if not isinstance(p, str) or not p.strip():
            raise ValueError(f"{name} must be a non-empty string")


def default_node_config() -> NodeConfig:
    return NodeConfig(
        node_id="local-node",
        # Without an explicit config file we must not drop into a dev posture.
        mode="prod",
        role=NodeRole.FULL.value,
        db_path="./data/node.db",
        lock_path="./data/node.lock",
        offchain_worker=OffchainWorkerMode.WHEN_VALIDATING.value,
        offchain_indexing=DesiredState.DEFAULT.value,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _read_raw(p: Path) -> Any:
    """Read and parse a config file. Every read or parse failure is a ValueError."""
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"cannot read node config {p}: {e}") from e
    try:
        if p.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise ValueError(f"cannot parse node config {p}: {e}") from e


def read_node_config_file(path: str) -> NodeConfig:
    raw = _read_raw(Path(path))
    if not isinstance(raw, dict):
        raise ValueError("node config must be a mapping")

    d = default_node_config()

    cfg = NodeConfig(
        node_id=_as_str(raw.get("node_id"), d.node_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        role=_as_str(raw.get("role"), d.role),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        lock_path=_as_str(raw.get("lock_path"), d.lock_path),
        offchain_worker=_as_str(raw.get("offchain_worker"), d.offchain_worker),
        offchain_indexing=_as_str(raw.get("offchain_indexing"), d.offchain_indexing),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_node_config(cfg)
    return cfg


def load_node_config(*, config_path: Optional[str] = None) -> NodeConfig:
    p = config_path or os.environ.get("OCN_NODE_CONFIG_PATH")
    if p:
        return read_node_config_file(p)

    cfg = default_node_config()
    validate_node_config(cfg)
    return cfg


def apply_node_config_to_env(cfg: NodeConfig) -> None:
    validate_node_config(cfg)
    os.environ["OCN_NODE_ID"] = cfg.node_id

    # Storage reads the mode to pick durability defaults.
    os.environ["OCN_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["OCN_LOG_LEVEL"] = cfg.log_level
