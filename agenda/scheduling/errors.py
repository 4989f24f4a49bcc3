"""Errors raised by the scheduling engine.

Every error is recoverable from the caller's point of view. Routes translate
them to HTTP responses using ``status_code`` and ``to_payload()``.
"""


class SchedulingError(Exception):
    """Base class for all scheduling engine errors."""

    code = 'scheduling_error'
    status_code = 400
    default_message = 'The request could not be processed.'

    def __init__(self, message: str | None = None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {'error': self.code, 'message': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class ValidationError(SchedulingError):
    """Malformed input; ``details`` lists ``{field, message}`` entries."""

    code = 'validation_failed'
    default_message = 'Validation failed.'

    def __init__(self, errors: list[dict], message: str | None = None):
        super().__init__(message, details=errors)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> 'ValidationError':
        return cls([{'field': field, 'message': message}])


class ConfigError(SchedulingError):
    code = 'invalid_profile'
    status_code = 422
    default_message = 'The availability profile is invalid.'


class NotConfiguredError(ConfigError):
    code = 'profile_not_found'
    status_code = 404
    default_message = 'Configure your availability profile first.'


class InvalidDateError(SchedulingError):
    code = 'invalid_date'
    default_message = 'Cannot look up availability for a past date.'


class PastDateError(SchedulingError):
    code = 'past_date'
    default_message = 'Appointments must be scheduled in the future.'


class ClientNotFoundError(SchedulingError):
    code = 'client_not_found'
    status_code = 404
    default_message = 'Client not found.'


class ServiceNotFoundError(SchedulingError):
    code = 'service_not_found'
    status_code = 404
    default_message = 'Service not found or inactive.'


class AppointmentNotFoundError(SchedulingError):
    code = 'appointment_not_found'
    status_code = 404
    default_message = 'Appointment not found.'


class TimeConflictError(SchedulingError):
    code = 'time_conflict'
    status_code = 409
    default_message = 'This time is already booked.'


class InvalidTransitionError(SchedulingError):
    code = 'invalid_status_transition'

    def __init__(self, source: str, target: str):
        super().__init__(f'Cannot change status from {source} to {target}.')
        self.source = source
        self.target = target


class FutureAppointmentError(SchedulingError):
    code = 'future_appointment'
    default_message = 'Cannot mark a future appointment as completed.'


class TooEarlyError(SchedulingError):
    code = 'too_early_for_no_show'
    default_message = 'Too early to mark this appointment as a no-show.'


class CancellationWindowError(SchedulingError):
    code = 'cancellation_window'
    default_message = 'Appointments cannot be cancelled this close to their start time.'


class StorageError(SchedulingError):
    code = 'storage_unavailable'
    status_code = 503
    default_message = 'Database unavailable. Verify DATABASE_URL and database credentials.'
