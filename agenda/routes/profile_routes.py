from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_user, get_db
from agenda.core import config
from agenda.models.user import User
from agenda.routes.common import build_storage, ensure_database_ready, to_http_exception
from agenda.scheduling.errors import SchedulingError
from agenda.scheduling.profile import parse_clock_time, validate_profile
from agenda.scheduling.records import AvailabilityProfile
from agenda.scheduling.slots import format_slot

router = APIRouter(tags=['profile'])


class ProfileRequest(BaseModel):
    working_days: list[int] = Field(default_factory=lambda: list(config.DEFAULT_WORKING_DAYS))
    work_start: str = config.DEFAULT_WORKING_HOURS[0]
    work_end: str = config.DEFAULT_WORKING_HOURS[1]
    slot_duration_minutes: int = config.DEFAULT_SLOT_DURATION_MINUTES
    booking_lead_hours: int = Field(default=config.DEFAULT_BOOKING_LEAD_HOURS, le=8760)

    @field_validator('working_days')
    @classmethod
    def deduplicate_days(cls, value: list[int]) -> list[int]:
        return sorted(set(value))


class ProfileResponse(BaseModel):
    working_days: list[int]
    work_start: str
    work_end: str
    slot_duration_minutes: int
    booking_lead_hours: int


def to_profile_response(profile: AvailabilityProfile) -> ProfileResponse:
    return ProfileResponse(
        working_days=sorted(profile.working_days),
        work_start=format_slot(profile.work_start),
        work_end=format_slot(profile.work_end),
        slot_duration_minutes=profile.slot_duration_minutes,
        booking_lead_hours=profile.booking_lead_hours,
    )


@router.get('', response_model=ProfileResponse)
def get_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        profile = build_storage(db).find_profile(current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Configure your availability profile first.',
        )

    return to_profile_response(profile)


@router.put('', response_model=ProfileResponse)
def save_profile(
    data: ProfileRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        profile = validate_profile(
            AvailabilityProfile(
                owner_id=current_user.id,
                working_days=frozenset(data.working_days),
                work_start=parse_clock_time(data.work_start),
                work_end=parse_clock_time(data.work_end),
                slot_duration_minutes=data.slot_duration_minutes,
                booking_lead_hours=data.booking_lead_hours,
            )
        )
        build_storage(db).save_profile(profile)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_profile_response(profile)
