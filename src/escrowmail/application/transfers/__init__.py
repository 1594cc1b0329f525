from .auto_claim import AutoClaimer
from .intake import CreateTransferRequest, TransferIntake
from .resolvers import CancelResolver, ClaimResolver, ExpiryResolver
from .runtime import TransferRuntime
from .service import PendingTransferService, TransferServicePort
from .sweepers import ExpirySweeper, ReminderScheduler

__all__ = [
    "AutoClaimer",
    "CancelResolver",
    "ClaimResolver",
    "CreateTransferRequest",
    "ExpiryResolver",
    "ExpirySweeper",
    "PendingTransferService",
    "ReminderScheduler",
    "TransferIntake",
    "TransferRuntime",
    "TransferServicePort",
]
