from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.domain.transfer import TransferEvent


class LoggingEventLog(TransferEventLogPort):
    """Emit audit events as JSON lines to the Python logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._logger = logger or logging.getLogger("escrowmail.eventlog")
        self._level = level

    def append(self, event: TransferEvent) -> None:
        self._logger.log(self._level, json.dumps(event.to_dict(), ensure_ascii=False, default=str))

    def stream(self, transfer_id: str) -> Iterable[dict]:
        # Logging backend cannot stream retrospectively.
        return iter(())

    def close(self) -> None:
        return None
