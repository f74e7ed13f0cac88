from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path

import pytest

from offchain_node.runtime.node_config import (
    apply_node_config_to_env,
    default_node_config,
    load_node_config,
    read_node_config_file,
    validate_node_config,
)
from offchain_node.runtime.offchain_indexing import DesiredState
from offchain_node.runtime.roles import NodeRole, OffchainWorkerMode


def test_default_config_is_prod_full_node(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OCN_NODE_CONFIG_PATH", raising=False)
    cfg = load_node_config()
    assert cfg == default_node_config()
    assert cfg.mode == "prod"
    assert cfg.node_role is NodeRole.FULL

    params = cfg.offchain_params()
    assert params.worker_mode is OffchainWorkerMode.WHEN_VALIDATING
    assert params.indexing is DesiredState.DEFAULT


def test_json_config_file(tmp_path: Path) -> None:
    p = tmp_path / "node.json"
    p.write_text(
        json.dumps(
            {
                "node_id": "alice",
                "mode": "TESTNET",
                "role": "Authority",
                "db_path": str(tmp_path / "db" / "node.db"),
                "offchain_indexing": "forceenable",
                "api_port": "9000",
            }
        ),
        encoding="utf-8",
    )

    cfg = read_node_config_file(str(p))
    assert cfg.node_id == "alice"
    assert cfg.mode == "testnet"
    assert cfg.node_role is NodeRole.AUTHORITY
    assert cfg.api_port == 9000
    assert cfg.offchain_params().indexing is DesiredState.FORCE_ENABLE
    # unset keys fall back to defaults
    assert cfg.lock_path == default_node_config().lock_path


def test_yaml_config_file_via_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "node.yaml"
    p.write_text(
        "node_id: bob\n"
        "mode: dev\n"
        "role: light\n"
        "offchain_worker: Always\n"
        "offchain_indexing: Disable\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("OCN_NODE_CONFIG_PATH", str(p))

    cfg = load_node_config()
    assert cfg.node_id == "bob"
    assert cfg.node_role is NodeRole.LIGHT
    params = cfg.offchain_params()
    assert params.worker_mode is OffchainWorkerMode.ALWAYS
    assert params.indexing is DesiredState.DISABLE


def test_non_mapping_config_rejected(tmp_path: Path) -> None:
    p = tmp_path / "node.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        read_node_config_file(str(p))


def test_missing_config_file_is_a_value_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="cannot read node config"):
        read_node_config_file(str(tmp_path / "absent.yaml"))


@pytest.mark.parametrize(
    "name,text",
    [
        ("node.yaml", "role: [unclosed\n"),
        ("node.json", "{not json"),
    ],
)
def test_malformed_config_file_is_a_value_error(tmp_path: Path, name: str, text: str) -> None:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ValueError, match="cannot parse node config"):
        read_node_config_file(str(p))


@pytest.mark.parametrize(
    "field,value,msg",
    [
        ("node_id", " ", "node_id"),
        ("mode", "staging", "mode"),
        ("role", "archive", "node role"),
        ("offchain_worker", "sometimes", "offchain worker mode"),
        ("offchain_indexing", "maybe", "offchain indexing state"),
        ("api_port", 70000, "api_port"),
        ("db_path", "", "db_path"),
    ],
)
def test_validation_rejects_bad_values(field: str, value: object, msg: str) -> None:
    cfg = dataclasses.replace(default_node_config(), **{field: value})
    with pytest.raises(ValueError, match=msg):
        validate_node_config(cfg)


def test_apply_node_config_to_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OCN_NODE_ID", "OCN_MODE", "OCN_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    cfg = dataclasses.replace(default_node_config(), node_id="n1", mode="dev", log_level="DEBUG")
    apply_node_config_to_env(cfg)

    assert os.environ["OCN_NODE_ID"] == "n1"
    assert os.environ["OCN_MODE"] == "dev"
    assert os.environ["OCN_LOG_LEVEL"] == "DEBUG"
