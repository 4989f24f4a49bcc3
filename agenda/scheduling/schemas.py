"""Request schema for appointment writes."""

import re
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from agenda.scheduling.errors import ValidationError

PHONE_PATTERN = re.compile(r'^(\+55\s?)?(\(?\d{2}\)?\s?)?\d{4,5}-?\d{4}$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MAX_INPUT_LENGTH = 1000

_SCRIPT_TAG = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)
_JS_PROTOCOL = re.compile(r'javascript:', re.IGNORECASE)
_INLINE_HANDLER = re.compile(r'on\w+\s*=', re.IGNORECASE)


def sanitize_input(value: str) -> str:
    """Strip script tags, ``javascript:`` URLs and inline event handlers."""
    cleaned = _SCRIPT_TAG.sub('', value.strip())
    cleaned = _JS_PROTOCOL.sub('', cleaned)
    cleaned = _INLINE_HANDLER.sub('', cleaned)
    return cleaned[:MAX_INPUT_LENGTH]


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = sanitize_input(value)
    return cleaned or None


class AppointmentRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    start_time: datetime
    service_id: int | None = Field(default=None, gt=0)
    client_id: int | None = Field(default=None, gt=0)
    client_name: str | None = Field(default=None, min_length=2, max_length=100)
    client_email: str | None = Field(default=None, max_length=255)
    client_phone: str | None = None
    service_name: str | None = Field(default=None, min_length=2, max_length=100)
    duration_minutes: int | None = Field(default=None, ge=15, le=480)
    service_price: Decimal | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator('start_time')
    @classmethod
    def normalize_start_time(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value.replace(second=0, microsecond=0)

    @field_validator('client_name', 'service_name', 'notes', 'client_phone', mode='before')
    @classmethod
    def sanitize_text(cls, value):
        if isinstance(value, str):
            return _clean_optional(value)
        return value

    @field_validator('client_email', mode='before')
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            cleaned = _clean_optional(value)
            return cleaned.lower() if cleaned else None
        return value

    @field_validator('client_email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is not None and not EMAIL_PATTERN.match(value):
            raise ValueError('Invalid email address.')
        return value

    @field_validator('client_phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is not None and not PHONE_PATTERN.match(value):
            raise ValueError('Invalid phone number.')
        return value

    @model_validator(mode='after')
    def check_client_and_service(self) -> 'AppointmentRequest':
        if (self.client_id is None) == (self.client_name is None):
            raise ValueError('Provide either client_id or client_name, not both.')
        if self.client_id is not None and (self.client_email or self.client_phone):
            raise ValueError('Contact fields are only accepted for clients without client_id.')
        if self.service_id is None and (self.service_name is None or self.duration_minutes is None):
            raise ValueError('service_name and duration_minutes are required without service_id.')
        return self


def _field_errors(exc: PydanticValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error['loc'])
        message = error['msg']
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        errors.append({'field': location or 'request', 'message': message})
    return errors


def parse_appointment_request(payload: dict) -> AppointmentRequest:
    try:
        return AppointmentRequest.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc)) from exc
