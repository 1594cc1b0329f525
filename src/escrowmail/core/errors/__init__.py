"""
Unified error module.
"""

from .errors import (
    ErrorSeverity,
    EscrowMailError,
    NotFoundError,
    InvalidStateError,
    UnauthorizedError,
    MissingWalletError,
    CustodyError,
    ConfigurationError,
    ValidationError,
    Result,
)

__all__ = [
    "ErrorSeverity",
    "EscrowMailError",
    "NotFoundError",
    "InvalidStateError",
    "UnauthorizedError",
    "MissingWalletError",
    "CustodyError",
    "ConfigurationError",
    "ValidationError",
    "Result",
]
