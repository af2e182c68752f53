from fastapi import HTTPException

from servicehub.services.errors import (
    SchedulingConflictError,
    SchedulingError,
    SchedulingNotFoundError,
    SchedulingPermissionError,
)


def raise_scheduling_http_error(exc: SchedulingError) -> None:
    if isinstance(exc, SchedulingNotFoundError):
        raise HTTPException(status_code=404, detail=exc.to_detail())
    if isinstance(exc, SchedulingPermissionError):
        raise HTTPException(status_code=403, detail=exc.to_detail())
    if isinstance(exc, SchedulingConflictError):
        raise HTTPException(status_code=409, detail=exc.to_detail())
    raise HTTPException(status_code=400, detail=exc.to_detail())
