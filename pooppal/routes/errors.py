"""Translate sync-layer results into HTTP errors."""

from fastapi import HTTPException, status

from ..results import ErrorKind, OperationResult

_STATUS_BY_KIND = {
    ErrorKind.validation: status.HTTP_400_BAD_REQUEST,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.expired: status.HTTP_410_GONE,
    ErrorKind.store: status.HTTP_502_BAD_GATEWAY,
}


def raise_for_result(result: OperationResult) -> None:
    """Raise an HTTPException carrying the failure message; no-op on success."""
    if result.ok:
        return
    raise HTTPException(
        status_code=_STATUS_BY_KIND.get(result.kind, status.HTTP_502_BAD_GATEWAY),
        detail=result.error or "Operation failed",
    )
