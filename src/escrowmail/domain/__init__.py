"""
Domain models.
"""

from .transfer import (
    DEFAULT_CHAINS,
    EXPIRY_WINDOW,
    PendingTransfer,
    TransferEvent,
    TransferStatus,
    TransferSummary,
    new_transfer_id,
    normalize_email,
    utcnow,
)

__all__ = [
    "DEFAULT_CHAINS",
    "EXPIRY_WINDOW",
    "PendingTransfer",
    "TransferEvent",
    "TransferStatus",
    "TransferSummary",
    "new_transfer_id",
    "normalize_email",
    "utcnow",
]
