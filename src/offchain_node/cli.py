# src/offchain_node/cli.py
"""Operator CLI.

  offchain-node check   [--config PATH] [--db-path PATH] [--role ROLE]
                        [--offchain-worker MODE] [--enable-offchain-indexing STATE]
  offchain-node inspect [--config PATH] [--db-path PATH]

`check` runs the startup reconciliation exactly as the node does and prints
the resolved offchain config as JSON. `inspect` opens the database read-only
and never creates it.

Exit codes: 0 ok, 1 store/config failure, 2 re-sync required.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from offchain_node.env import load_dotenv_if_present
from offchain_node.runtime.errors import ReconcileError, ResyncRequired
from offchain_node.runtime.node_boot import boot_node
from offchain_node.runtime.node_config import NodeConfig, apply_node_config_to_env, load_node_config
from offchain_node.runtime.offchain_indexing import DesiredState, read_record
from offchain_node.runtime.roles import NodeRole, OffchainWorkerMode
from offchain_node.storage.sqlite_db import SqliteDB, SqliteMetaStore
from offchain_node.structured_logging import configure_structured_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_RESYNC_REQUIRED = 2


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="offchain-node", description="Offchain indexing startup checks.")
    sub = ap.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Node config file (JSON or YAML).")
    common.add_argument("--db-path", default=None, help="Override db_path from config.")

    check = sub.add_parser("check", parents=[common], help="Reconcile offchain indexing and print the result.")
    check.add_argument("--lock-path", default=None, help="Override lock_path from config.")
    check.add_argument(
        "--role",
        default=None,
        type=str.lower,
        choices=[r.value for r in NodeRole],
        help="Node role; only 'authority' counts as a validator.",
    )
    check.add_argument(
        "--offchain-worker",
        default=None,
        metavar="ENABLED",
        help="Run offchain workers: " + ", ".join(m.value for m in OffchainWorkerMode) + " (case-insensitive).",
    )
    check.add_argument(
        "--enable-offchain-indexing",
        default=None,
        metavar="ENABLE_OFFCHAIN_INDEXING",
        help="Runtime write access to the offchain DB during block import: "
        + ", ".join(s.value for s in DesiredState)
        + " (case-insensitive).",
    )

    sub.add_parser("inspect", parents=[common], help="Print the stored offchain indexing record without writing.")
    return ap


def _resolve_config(args: argparse.Namespace) -> NodeConfig:
    cfg = load_node_config(config_path=args.config)
    overrides = {}
    if args.db_path:
        overrides["db_path"] = args.db_path
    if getattr(args, "lock_path", None):
        overrides["lock_path"] = args.lock_path
    if getattr(args, "role", None):
        overrides["role"] = args.role
    if getattr(args, "offchain_worker", None):
        overrides["offchain_worker"] = args.offchain_worker
    if getattr(args, "enable_offchain_indexing", None):
        overrides["offchain_indexing"] = args.enable_offchain_indexing
    cfg = dataclasses.replace(cfg, **overrides)
    apply_node_config_to_env(cfg)
    return cfg


def _cmd_check(cfg: NodeConfig) -> int:
    node = boot_node(cfg)
    try:
        out = {"node_id": cfg.node_id, "role": node.role.value, **node.offchain.to_json()}
        print(json.dumps(out, sort_keys=True))
    finally:
        node.close()
    return EXIT_OK


def _cmd_inspect(cfg: NodeConfig) -> int:
    rec = None
    if Path(cfg.db_path).is_file():
        store = SqliteMetaStore(db=SqliteDB(path=cfg.db_path, read_only=True))
        rec = read_record(store)
    if rec is None:
        out = {"present": False}
    else:
        out = {"present": True, "enabled": rec.enabled, "needs_warning": rec.needs_warning}
    print(json.dumps(out, sort_keys=True))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv_if_present()
    args = _build_parser().parse_args(argv)

    try:
        cfg = _resolve_config(args)
    except ValueError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    configure_structured_logging()
    logging.getLogger("offchain_node.cli").debug("command=%s", args.command)

    try:
        if args.command == "check":
            return _cmd_check(cfg)
        return _cmd_inspect(cfg)
    except ResyncRequired as e:
        print(f"re-sync required: {e.reason}", file=sys.stderr)
        return EXIT_RESYNC_REQUIRED
    except ReconcileError as e:
        print(f"{e.code}: {e.reason}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
