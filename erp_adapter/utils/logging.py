"""
Logging for the ERP adapter process.

`scripts/serve.py` and `scripts/tool_smoke_test.py` call `setup_logging()` once
with `Settings.log_level`. Retries are logged by `erp_adapter.upstream.client`
and per-call outcomes by `erp_adapter.tools.executor`, both tagged with the
request id, so per-request lines from httpx are turned down.
"""

import logging
from typing import Final


_LOG_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)


def setup_logging(level: str) -> None:
    """
    Configure root logging.

    Args:
        level: e.g. "DEBUG", "INFO", "WARNING"
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=_LOG_FORMAT,
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
