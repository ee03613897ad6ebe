"""Error taxonomy shared by services and endpoints.

Services raise these; endpoints translate them into HTTP responses using
``status_code``.
"""


class SchedulerError(Exception):
    """Base class for expected scheduling failures."""

    status_code = 500
    default_message = "Scheduling error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class Unauthorized(SchedulerError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(SchedulerError):
    status_code = 404
    default_message = "Record not found"


class InvalidInterval(SchedulerError):
    status_code = 422
    default_message = "Start time must be before end time"


class SlotConflict(SchedulerError):
    status_code = 409
    default_message = "Requested interval overlaps an existing appointment"


class SlotUnavailable(SchedulerError):
    status_code = 409
    default_message = "Requested interval is not open for booking"


class InvalidStatus(SchedulerError):
    status_code = 409
    default_message = "Appointment cannot change to the requested status"


class UpstreamUnavailable(SchedulerError):
    status_code = 503
    default_message = "Upstream service unavailable"


class InternalError(SchedulerError):
    status_code = 500
    default_message = "Internal server error"
