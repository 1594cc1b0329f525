from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from escrowmail.config import LoggingConfig


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root logging once per process (API, worker, CLI)."""
    config = config or LoggingConfig()
    logging.basicConfig(level=config.level.upper(), format=config.format)
    if not config.file:
        return

    path = Path(config.file).expanduser()
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == path.resolve():
            return
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=config.max_bytes, backupCount=config.backup_count, encoding="utf-8")
    handler.setFormatter(logging.Formatter(config.format))
    root.addHandler(handler)
