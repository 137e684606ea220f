"""Error taxonomy shared by the service and the timer client.

Every error subclasses ``ValueError`` so service code keeps raising and
catching the way the routers expect, while ``code`` and ``status_code``
let the HTTP layer and the client agree on what went wrong.
"""


class TimeTrackingError(ValueError):
    """Base exception for time tracking failures."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ConflictError(TimeTrackingError):
    """Another active timer exists for the user on a different task."""

    code = "conflict"
    status_code = 409


class InvalidTaskStateError(TimeTrackingError):
    """The target task is not in the status required for tracking."""

    code = "invalid_task_state"
    status_code = 422


class InvalidStateError(TimeTrackingError):
    """The command is not allowed from the current timer or approval state."""

    code = "invalid_state"
    status_code = 409


class ValidationError(TimeTrackingError):
    """Malformed input, e.g. a manual entry that ends before it starts."""

    code = "validation_error"
    status_code = 422


class NotFoundError(TimeTrackingError):
    """Referenced task or time entry does not exist for this user."""

    code = "not_found"
    status_code = 404


class PermissionDeniedError(TimeTrackingError):
    """The caller is not allowed to perform this operation."""

    code = "forbidden"
    status_code = 403


class TransientNetworkError(TimeTrackingError):
    """The time tracking service could not be reached."""

    code = "network_error"
    status_code = 503


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ConflictError,
        InvalidTaskStateError,
        InvalidStateError,
        ValidationError,
        NotFoundError,
        PermissionDeniedError,
        TransientNetworkError,
    )
}
