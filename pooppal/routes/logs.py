"""Log entry routes."""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter

from ..models import LogCreate, LogDeleteResponse, LogEntry, LogListResponse
from ..session import CurrentSession
from .errors import raise_for_result

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", response_model=LogListResponse)
async def list_logs(session: CurrentSession, refresh: bool = False):
    """
    The user's logs, newest first.

    ``refresh=true`` reloads from the store first. A failed reload keeps the
    previous list and reports the message in ``error``.
    """
    if refresh:
        await session.logs.refresh()
    return LogListResponse(
        logs=session.logs.logs,
        total=len(session.logs.logs),
        error=session.logs.error,
    )


@router.post("", response_model=LogEntry, status_code=201)
async def add_log(payload: LogCreate, session: CurrentSession):
    """Log an entry stamped with the current time."""
    result = await session.logs.add_log(session.user.id, payload.type, payload.notes)
    raise_for_result(result)
    return result.value


@router.delete("/{log_id}", response_model=LogDeleteResponse)
async def delete_log(log_id: str, session: CurrentSession):
    """
    Delete an entry.

    The entry can be brought back with ``POST /logs/{log_id}/restore`` until
    ``undo_until``.
    """
    result = await session.logs.delete_log(log_id)
    raise_for_result(result)
    return LogDeleteResponse(
        deleted=log_id,
        undo_until=datetime.now(timezone.utc) + timedelta(seconds=session.logs.undo_window_seconds),
    )


@router.post("/{log_id}/restore", response_model=LogEntry)
async def restore_log(log_id: str, session: CurrentSession):
    """Undo the most recent delete while the undo window is open."""
    result = await session.logs.undo_delete(log_id)
    raise_for_result(result)
    return result.value
