"""Logging helpers."""
from __future__ import annotations

import logging
from pathlib import Path


def configure_logging(level: str, log_dir: Path) -> None:
    """Configure basic logging for the API server and CLI."""
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_dir / "shudenout.log", encoding="utf-8"),
        ],
    )
    # httpx logs every request URL at INFO, which would leak the application id.
    logging.getLogger("httpx").setLevel(logging.WARNING)
