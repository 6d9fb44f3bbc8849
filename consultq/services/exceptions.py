class ServiceError(Exception):
    """Base exception for service layer failures."""

    code = "service_error"
    status_code = 500

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class DownstreamServiceError(ServiceError):
    """Raised when the records backend returns an error response."""

    code = "downstream_error"

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class QueueError(ServiceError):
    """A queue operation was refused. Nothing was written."""

    code = "queue_error"
    status_code = 400


class NoAppointmentsToday(QueueError):
    code = "no_appointments_today"
    status_code = 404


class NoMoreAppointments(QueueError):
    code = "no_more_appointments"
    status_code = 404


class StalePrecondition(QueueError):
    """The session or appointment moved since the caller last observed it."""

    code = "stale_precondition"
    status_code = 409


class InvalidTransition(QueueError):
    code = "invalid_transition"
    status_code = 409


class SessionNotFound(QueueError):
    code = "session_not_found"
    status_code = 404


class AppointmentNotFound(QueueError):
    code = "appointment_not_found"
    status_code = 404


class DoctorNotFound(QueueError):
    code = "doctor_not_found"
    status_code = 404


class ValidationFailed(QueueError):
    code = "validation_failed"
    status_code = 400
