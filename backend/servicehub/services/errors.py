from typing import Any, Dict, Optional


class SchedulingError(ValueError):
    """Base class for user-visible matching and scheduling errors."""

    kind = "SchedulingError"

    def __init__(self, message: str, *, field: Optional[str] = None, value: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_detail(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
        }


class SchedulingValidationError(SchedulingError):
    pass


class SchedulingNotFoundError(SchedulingError):
    pass


class SchedulingPermissionError(SchedulingError):
    pass


class SchedulingConflictError(SchedulingError):
    pass


class InvalidArgument(SchedulingValidationError):
    kind = "InvalidArgument"


class ValidationFailed(SchedulingValidationError):
    kind = "ValidationFailed"


class InvalidStatusTransition(SchedulingValidationError):
    kind = "InvalidStatusTransition"

    def __init__(self, current: str, attempted: str) -> None:
        super().__init__(
            f"Invalid status transition: {current} -> {attempted}",
            field="status",
            value=attempted,
        )
        self.current = current
        self.attempted = attempted


class NotFoundOrUnauthorized(SchedulingNotFoundError):
    """Raised for slots that do not exist or belong to another provider."""

    kind = "NotFoundOrUnauthorized"


class RequestNotFound(SchedulingNotFoundError):
    kind = "RequestNotFound"


class NotAuthorized(SchedulingPermissionError):
    kind = "NotAuthorized"


class OverlapConflict(SchedulingConflictError):
    kind = "OverlapConflict"


class TimeConflict(SchedulingConflictError):
    kind = "TimeConflict"


class CapacityExceeded(SchedulingConflictError):
    kind = "CapacityExceeded"


class OutsideWorkingHours(SchedulingConflictError):
    kind = "OutsideWorkingHours"


class NoAvailability(SchedulingConflictError):
    kind = "NoAvailability"


class ProviderNotWorkingThatDay(SchedulingConflictError):
    kind = "ProviderNotWorkingThatDay"
