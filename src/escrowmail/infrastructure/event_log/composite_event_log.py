from __future__ import annotations

import logging
from typing import Iterable, List

from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.domain.transfer import TransferEvent

logger = logging.getLogger(__name__)


class CompositeEventLog(TransferEventLogPort):
    """Tee events to multiple backends, e.g. log lines plus the database."""

    def __init__(self, backends: List[TransferEventLogPort]):
        self._backends = [b for b in backends if b is not None]

    def append(self, event: TransferEvent) -> None:
        for backend in self._backends:
            try:
                backend.append(event)
            except Exception as e:
                logger.debug(f"CompositeEventLog backend append failed: {e}")

    def stream(self, transfer_id: str) -> Iterable[dict]:
        # First backend that can replay anything wins.
        for backend in self._backends:
            try:
                events = list(backend.stream(transfer_id))
            except Exception as e:
                logger.debug(f"CompositeEventLog backend stream failed: {e}")
                continue
            if events:
                return iter(events)
        return iter(())

    def close(self) -> None:
        for backend in self._backends:
            try:
                backend.close()
            except Exception as e:
                logger.debug(f"CompositeEventLog backend close failed: {e}")
