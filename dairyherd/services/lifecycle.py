"""
Lifecycle planning: derived breeding dates, dry-off timing and the
field updates each production status change implies.

Planners never write anything. They return a TransitionPlan whose
``updates`` the caller applies in a single write, guarded by
``expected_status`` so two concurrent requests cannot both succeed.
"""
import logging
from typing import Optional

from ..schemas import AnimalSnapshot, BreedingSettings, DryOffStatus, ScheduledEvent, TransitionPlan
from .classifier import CALF_MAX_AGE_DAYS, is_valid_status_for_gender
from .dates import DateLike, add_days, days_between, isoformat, parse_date, utc_today
from .eligibility import ELIGIBLE_STATUSES
from .errors import InvalidTransitionError, ValidationError

logger = logging.getLogger(__name__)

# the dry-off button appears this many days before the threshold
DRY_OFF_BUTTON_LEAD_DAYS = 2

# manual status changes; every status may also stay where it is
VALID_TRANSITIONS = {
    "calf": ["heifer", "bull"],
    "heifer": ["served", "lactating"],
    "served": ["lactating", "dry"],
    "lactating": ["dry", "served"],
    "dry": ["served", "lactating"],
    "bull": [],
}


def _snapshot(animal) -> AnimalSnapshot:
    if isinstance(animal, AnimalSnapshot):
        return animal
    return AnimalSnapshot.model_validate(animal)


# ==================== DERIVED DATES ====================

def expected_calving_date(service_date: DateLike, gestation_days: int) -> str:
    return isoformat(add_days(parse_date(service_date, "service_date"), gestation_days))


def expected_dry_off_date(service_date: DateLike, days_pregnant_at_dryoff: int) -> str:
    return isoformat(add_days(parse_date(service_date, "service_date"), days_pregnant_at_dryoff))


def next_expected_heat_date(last_heat_date: DateLike, cycle_interval: int) -> str:
    return isoformat(add_days(parse_date(last_heat_date, "last_heat_date"), cycle_interval))


# ==================== DRY-OFF TIMING ====================

def dry_off_status(animal, settings: BreedingSettings, today=None) -> DryOffStatus:
    """Whether a pregnant animal is due, or nearly due, to be dried off."""
    animal = _snapshot(animal)
    today = today or utc_today()
    threshold = settings.days_pregnant_at_dryoff

    if animal.production_status != "served" or not animal.service_date:
        return DryOffStatus(
            should_dry_off=False,
            days_until_dry_off=0,
            days_pregnant_at_dryoff=threshold,
            reason="Animal is not in served/pregnant status",
        )

    days_pregnant = days_between(animal.service_date, today)
    calving = animal.expected_calving_date or add_days(animal.service_date, settings.default_gestation)
    days_until_calving = max(0, days_between(today, calving))

    button_threshold = threshold - DRY_OFF_BUTTON_LEAD_DAYS
    days_until_alert = max(0, button_threshold - days_pregnant)
    show_button = days_pregnant >= button_threshold
    should_dry_off = days_pregnant >= threshold

    if should_dry_off:
        reason = (
            f"Animal has been pregnant for {days_pregnant} days, "
            f"READY for dry-off (threshold: {threshold} days)"
        )
    elif show_button:
        reason = f"Animal will be ready for dry-off in {days_until_alert} days - button is now visible"
    else:
        reason = f"Animal will be ready for dry-off in {days_until_alert + DRY_OFF_BUTTON_LEAD_DAYS} days"

    return DryOffStatus(
        show_dry_off_button=show_button,
        should_dry_off=should_dry_off,
        days_until_dry_off=days_until_alert,
        button_starts_in_days=max(0, button_threshold - days_pregnant),
        days_pregnant=days_pregnant,
        days_pregnant_at_dryoff=threshold,
        days_until_calving=days_until_calving,
        expected_calving_date=isoformat(calving),
        reason=reason,
    )


# ==================== STATUS CHANGES ====================

def plan_dry_off(animal, dry_off_date: Optional[DateLike] = None, today=None) -> TransitionPlan:
    """Move a lactating animal into its dry period."""
    animal = _snapshot(animal)
    today = today or utc_today()
    current = animal.production_status

    if current == "dry":
        raise InvalidTransitionError(current, "dry", "Animal is already in dry period")
    if current != "lactating":
        raise InvalidTransitionError(
            current, "dry", f"Cannot start dry off for non-lactating animal (current status: {current})"
        )

    dried = parse_date(dry_off_date, "dry_off_date") if dry_off_date else today
    return TransitionPlan(
        animal_id=animal.id,
        expected_status="lactating",
        target_status="dry",
        updates={
            "production_status": "dry",
            "dry_off_date": dried,
            "last_milking_date": today,
            "days_in_milk": None,
            "current_daily_production": 0,
            "service_date": None,
        },
        events=[ScheduledEvent(
            event_type="dry_off",
            scheduled_date=isoformat(dried),
            notes=f"Dry off started, last milking {isoformat(today)}",
        )],
    )


def validate_status_transition(current: Optional[str], new: str, age_days: int, gender: Optional[str] = None) -> None:
    """Raise InvalidTransitionError unless ``current`` may become ``new``."""
    if gender and not is_valid_status_for_gender(new, gender):
        raise InvalidTransitionError(current, new, f"Production status '{new}' is not valid for a {gender} animal")
    if current is not None and new != current and new not in VALID_TRANSITIONS.get(current, []):
        raise InvalidTransitionError(current, new, f"Cannot transition from {current} to {new}")
    if new == "calf" and age_days > CALF_MAX_AGE_DAYS:
        raise InvalidTransitionError(current, new, "Animal is too old to be classified as calf")


def plan_status_change(animal, new_status: str, dry_off_date: Optional[DateLike] = None, today=None) -> TransitionPlan:
    """Plan a manual production status change; drying off gets its full field reset."""
    animal = _snapshot(animal)
    today = today or utc_today()
    if new_status == "dry":
        return plan_dry_off(animal, dry_off_date, today)

    age_days = max(0, days_between(animal.birth_date, today)) if animal.birth_date else 0
    validate_status_transition(animal.production_status, new_status, age_days, animal.gender)
    if new_status == "served" and animal.production_status != "served":
        # service_date must accompany served, so it comes from a breeding record
        raise InvalidTransitionError(
            animal.production_status, new_status, "Record a breeding to mark an animal as served"
        )

    updates = {"production_status": new_status}
    if new_status == "lactating":
        updates.update(service_date=None, expected_calving_date=None)
    return TransitionPlan(
        animal_id=animal.id,
        expected_status=animal.production_status,
        target_status=new_status,
        updates=updates,
    )


def plan_service(animal, breeding_date: DateLike, settings: BreedingSettings) -> TransitionPlan:
    """Record a service: the animal becomes served and a pregnancy check may be booked."""
    animal = _snapshot(animal)
    bred = parse_date(breeding_date, "breeding_date")
    current = animal.production_status

    if animal.gender == "male":
        raise InvalidTransitionError(current, "served", "Male animals cannot be bred (they are sires)")
    if current not in ELIGIBLE_STATUSES:
        raise InvalidTransitionError(
            current, "served", f'Production status "{current}" is not eligible for breeding'
        )

    events = []
    if settings.auto_schedule_pregnancy_check:
        events.append(ScheduledEvent(
            event_type="pregnancy_check",
            scheduled_date=isoformat(add_days(bred, settings.pregnancy_check_days)),
            notes=f"Auto-scheduled {settings.pregnancy_check_days} days after breeding",
        ))

    return TransitionPlan(
        animal_id=animal.id,
        expected_status=current,
        target_status="served",
        updates={"production_status": "served", "service_date": bred},
        events=events,
    )


def plan_pregnancy_confirmation(
    animal,
    settings: BreedingSettings,
    confirmation_date: DateLike,
    expected_calving: Optional[DateLike] = None,
) -> TransitionPlan:
    """Fix the expected calving date and book the dry-off and calving reminders."""
    animal = _snapshot(animal)
    current = animal.production_status
    if current != "served" or not animal.service_date:
        raise InvalidTransitionError(
            current, "served", f"Only served animals can be confirmed pregnant (current status: {current})"
        )

    confirmed = parse_date(confirmation_date, "confirmation_date")
    if confirmed < animal.service_date:
        raise ValidationError("confirmation_date", "cannot be before the service date")

    if expected_calving:
        calving = parse_date(expected_calving, "expected_calving_date")
    else:
        calving = add_days(animal.service_date, settings.default_gestation)

    events = []
    if settings.auto_create_dry_off:
        events.append(ScheduledEvent(
            event_type="dry_off_scheduled",
            scheduled_date=isoformat(add_days(calving, -settings.dry_period_days)),
            notes=f"Auto-scheduled dry-off {settings.dry_period_days} days before calving",
        ))
    events.append(ScheduledEvent(
        event_type="calving_expected",
        scheduled_date=isoformat(calving),
        notes="Expected calving date",
    ))

    return TransitionPlan(
        animal_id=animal.id,
        expected_status="served",
        target_status="served",
        updates={"expected_calving_date": calving},
        events=events,
    )


def plan_calving(animal, calving_date: DateLike, settings: BreedingSettings) -> TransitionPlan:
    """Start a new lactation and book the date breeding may resume."""
    animal = _snapshot(animal)
    current = animal.production_status
    if current not in ("served", "dry"):
        raise InvalidTransitionError(
            current, "lactating", f"Cannot record calving for an animal that is {current}"
        )

    calved = parse_date(calving_date, "calving_date")
    if animal.service_date and calved < animal.service_date:
        raise ValidationError("calving_date", "cannot be before the service date")

    delay = settings.postpartum_breeding_delay_days
    logger.debug(f"Planning calving for animal {animal.id} on {calved}")
    return TransitionPlan(
        animal_id=animal.id,
        expected_status=current,
        target_status="lactating",
        updates={
            "production_status": "lactating",
            "service_date": None,
            "expected_calving_date": None,
        },
        events=[ScheduledEvent(
            event_type="breeding_eligible",
            scheduled_date=isoformat(add_days(calved, delay)),
            notes=f"Eligible for breeding after {delay}-day postpartum delay",
        )],
    )
