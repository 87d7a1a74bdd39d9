"""
Breeding eligibility.

Rules run in a fixed order. A blocking rule records its blocker and ends
the evaluation; informational rules add reasons or recommendations and
let evaluation continue.
"""
import logging
from typing import Optional

from ..schemas import AnimalSnapshot, BreedingEligibility, BreedingSettings
from .classifier import age_in_months, calculate_age_days, check_gender
from .dates import DateLike, add_days, days_between, isoformat, optional_date, utc_today

logger = logging.getLogger(__name__)

ELIGIBLE_STATUSES = ("heifer", "dry", "lactating")
BLOCKING_HEALTH_STATUSES = ("sick", "quarantined")
# months past the minimum age during which heat cycles need close watching
NEW_BREEDER_WINDOW_MONTHS = 3


def _snapshot(animal) -> AnimalSnapshot:
    if isinstance(animal, AnimalSnapshot):
        return animal
    return AnimalSnapshot.model_validate(animal)


def evaluate(
    animal,
    settings: BreedingSettings,
    last_calving_date: Optional[DateLike] = None,
    last_breeding_date: Optional[DateLike] = None,
    today=None,
) -> BreedingEligibility:
    """Decide whether ``animal`` may be bred now, and explain why."""
    animal = _snapshot(animal)
    today = today or utc_today()
    result = BreedingEligibility()

    def block(message: str, next_date=None) -> BreedingEligibility:
        result.can_breed = False
        result.blockers.append(message)
        result.next_breeding_date = isoformat(next_date)
        logger.debug(f"Animal {animal.id} not eligible for breeding: {message}")
        return result

    if animal.gender == "male":
        return block("Male animals cannot be bred (they are sires)")
    check_gender(animal.gender)

    age_days = calculate_age_days(animal.birth_date, today)
    age_months = age_in_months(age_days)
    min_age_months = settings.minimum_breeding_age_months
    if age_months < min_age_months:
        days_until_eligible = max(0, min_age_months * 30 - age_days)
        return block(
            f"Too young - minimum breeding age is {min_age_months} months "
            f"({days_until_eligible} days remaining)"
        )

    status = animal.production_status
    if status not in ELIGIBLE_STATUSES:
        return block(f'Production status "{status}" is not eligible for breeding')

    calved = optional_date(last_calving_date, "last_calving_date")
    if calved is not None:
        delay = settings.postpartum_breeding_delay_days
        days_since_calving = days_between(calved, today)
        if days_since_calving < delay:
            days_remaining = max(0, delay - days_since_calving)
            return block(
                f"Too soon after calving - must wait {delay} days ({days_remaining} days remaining)",
                next_date=add_days(calved, delay),
            )
        result.reasons.append(f"Postpartum recovery complete ({days_since_calving} days since calving)")

    if animal.health_status in BLOCKING_HEALTH_STATUSES:
        return block(f'Health status "{animal.health_status}" prevents breeding')

    # only reachable if served joins ELIGIBLE_STATUSES
    if status == "served" and animal.expected_calving_date:
        return block("Animal is currently pregnant")

    bred = optional_date(last_breeding_date, "last_breeding_date")
    if bred is not None:
        days_since_breeding = days_between(bred, today)
        if days_since_breeding < settings.default_cycle_interval:
            result.recommendations.append(
                f"Recently bred {days_since_breeding} days ago - "
                f"typical cycle is {settings.default_cycle_interval} days"
            )

    if status == "heifer":
        result.recommendations.append("First time breeding - consider using proven sire with good ease of calving")
    elif status == "dry":
        result.recommendations.append("Dry cow ready for breeding")
    elif status == "lactating":
        result.recommendations.append("Currently lactating - breeding will start next lactation cycle")

    if min_age_months <= age_months < min_age_months + NEW_BREEDER_WINDOW_MONTHS:
        result.recommendations.append("Recently reached breeding age - monitor heat cycles carefully")

    result.reasons.append(f"Age: {age_months} months (meets minimum {min_age_months} months)")
    result.reasons.append(f"Production status: {status} (eligible)")
    result.reasons.append(f"Health status: {animal.health_status or 'healthy'}")
    return result
