# src/offchain_node/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from offchain_node.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so OCN_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from offchain_node.api.app import create_app
    from offchain_node.runtime.node_config import apply_node_config_to_env, load_node_config
    from offchain_node.structured_logging import configure_structured_logging

    cfg = load_node_config()
    apply_node_config_to_env(cfg)
    configure_structured_logging()

    host = os.getenv("OCN_API_HOST", cfg.api_host)
    port = int(os.getenv("OCN_API_PORT", str(cfg.api_port)))

    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
