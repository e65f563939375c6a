"""Operation outcomes shared by the sync layers."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Why an operation failed."""

    validation = "validation"
    not_found = "not_found"
    expired = "expired"
    store = "store"


@dataclass
class OperationResult:
    """Outcome of a sync operation. Expected failures are values, not exceptions."""

    ok: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    value: Any = None

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, message: str, kind: ErrorKind = ErrorKind.store) -> "OperationResult":
        return cls(ok=False, error=message, kind=kind)
