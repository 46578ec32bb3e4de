"""
Run the MCP adapter over HTTP.

Run:
    python scripts/serve.py --port 4000
"""

from __future__ import annotations

import argparse

import uvicorn

from erp_adapter.api.server import create_app
from erp_adapter.config import get_settings
from erp_adapter.utils.logging import setup_logging


def main() -> None:
    s = get_settings()

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default=s.host, type=str)
    parser.add_argument("--port", default=s.port, type=int)
    args = parser.parse_args()

    setup_logging(s.log_level)

    app = create_app(s)
    uvicorn.run(app, host=args.host, port=args.port, log_level=s.log_level.lower())


if __name__ == "__main__":
    main()
