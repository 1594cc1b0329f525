"""
Unified error taxonomy and Result wrapper.

Resolver errors surface to the caller; batch jobs collect them per item via
Result and keep going.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union


class ErrorSeverity(Enum):
    WARNING = "warning"      # caller input, recoverable
    ERROR = "error"          # operation failed
    CRITICAL = "critical"    # service cannot run


@dataclass(eq=False)
class EscrowMailError(Exception):
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    code: str = "UNKNOWN"
    context: Dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(eq=False)
class NotFoundError(EscrowMailError):
    code: str = "NOT_FOUND"


@dataclass(eq=False)
class InvalidStateError(EscrowMailError):
    """Action on a transfer that is no longer pending; `status` names the current one."""

    code: str = "INVALID_STATE"
    status: Optional[str] = None


@dataclass(eq=False)
class UnauthorizedError(EscrowMailError):
    code: str = "UNAUTHORIZED"


@dataclass(eq=False)
class MissingWalletError(EscrowMailError):
    code: str = "MISSING_WALLET"


@dataclass(eq=False)
class CustodyError(EscrowMailError):
    code: str = "CUSTODY_FAILURE"


@dataclass(eq=False)
class ConfigurationError(EscrowMailError):
    code: str = "CONFIGURATION"
    severity: ErrorSeverity = ErrorSeverity.CRITICAL


@dataclass(eq=False)
class ValidationError(EscrowMailError):
    code: str = "VALIDATION_ERROR"
    severity: ErrorSeverity = ErrorSeverity.WARNING


T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass
class Result(Generic[T, E]):
    """Functional result wrapper, used to collect per-item outcomes in batch jobs."""

    _value: Union[T, E]
    _is_ok: bool

    @classmethod
    def ok(cls, value: T) -> "Result[T, E]":
        return cls(_value=value, _is_ok=True)

    @classmethod
    def err(cls, error: E) -> "Result[T, E]":
        return cls(_value=error, _is_ok=False)

    def is_ok(self) -> bool:
        return self._is_ok
