from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any installed "offchain_node" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _restore_environ():
    # Boot/CLI paths export OCN_* settings into os.environ.
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)
