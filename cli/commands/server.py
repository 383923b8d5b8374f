"""CLI command for running the CharForge HTTP server."""

# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import logging

logger = logging.getLogger("charforge.cli")


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the CharForge server in the foreground."""
    import uvicorn

    from core.config import load_config
    from core.paths import get_data_dir
    from server.app import create_app

    config = load_config()
    host = args.host or config.server.host
    port = args.port or config.server.port

    display_host = "localhost" if host == "0.0.0.0" else host
    print(f"CharForge API ready at http://{display_host}:{port}/api/health")

    app = create_app(config, get_data_dir())
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=None,
    )
