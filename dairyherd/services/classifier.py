"""
Age-based production status classification.

A farm describes its herd with ordered categories (age band, optional
gender, optional production status). The first category in sort order
whose band and gender fit the animal decides its status; when nothing
fits, fixed default bands apply so farms without categories still get a
sensible answer.
"""
import logging
import math
from typing import Iterable, List, Optional

from ..schemas import AnimalCategory, Classification, MatchedCategory
from .dates import DateLike, days_between, parse_date, utc_today
from .errors import ValidationError

logger = logging.getLogger(__name__)

CALF_MAX_AGE_DAYS = 180
HEIFER_MAX_AGE_DAYS = 730

FEMALE_ONLY_STATUSES = ("heifer", "served", "lactating", "dry")
MALE_ONLY_STATUSES = ("bull",)

# (max age in days, status) checked in order
DEFAULT_RULES = {
    "female": [
        (CALF_MAX_AGE_DAYS, "calf"),
        (HEIFER_MAX_AGE_DAYS, "heifer"),
        (math.inf, "dry"),
    ],
    "male": [
        (CALF_MAX_AGE_DAYS, "calf"),
        (math.inf, "bull"),
    ],
}


def calculate_age_days(birth_date: DateLike, today=None) -> int:
    """Whole days since birth; a birth date in the future counts as day 0."""
    born = parse_date(birth_date, "birth_date")
    return max(0, days_between(born, today or utc_today()))


def age_in_months(age_days: int) -> int:
    return age_days // 30


def check_gender(gender) -> str:
    if gender is None or gender == "":
        raise ValidationError("gender", "is required")
    value = getattr(gender, "value", gender)
    value = str(value).lower()
    if value not in DEFAULT_RULES:
        raise ValidationError("gender", f"must be 'male' or 'female', got '{gender}'")
    return value


def is_valid_status_for_gender(status: str, gender: str) -> bool:
    if gender == "male" and status in FEMALE_ONLY_STATUSES:
        return False
    if gender == "female" and status in MALE_ONLY_STATUSES:
        return False
    return True


def valid_statuses_for_gender(gender: str) -> List[str]:
    if check_gender(gender) == "male":
        return ["calf", "bull"]
    return ["calf", "heifer", "served", "lactating", "dry"]


def default_status(age_days: int, gender: str) -> str:
    for max_age, status in DEFAULT_RULES[gender]:
        if age_days <= max_age:
            return status
    return "dry" if gender == "female" else "bull"


def _coerce(category) -> AnimalCategory:
    if isinstance(category, AnimalCategory):
        return category
    return AnimalCategory.model_validate(category)


def ordered_categories(categories: Optional[Iterable]) -> List[AnimalCategory]:
    """Categories in stored sort order; ties keep their given order."""
    coerced = [_coerce(c) for c in (categories or [])]
    return sorted(coerced, key=lambda c: c.sort_order)


def category_matches(category: AnimalCategory, age_days: int, gender: str) -> bool:
    min_age = category.min_age_days if category.min_age_days is not None else 0
    max_age = category.max_age_days if category.max_age_days is not None else math.inf
    return min_age <= age_days <= max_age and (not category.gender or category.gender == gender)


def find_matching_category(categories, age_days: int, gender: str) -> Optional[AnimalCategory]:
    for category in ordered_categories(categories):
        if category_matches(category, age_days, gender):
            return category
    return None


def map_characteristics(category: AnimalCategory, age_days: int, gender: str) -> str:
    """Status for a category that has no explicit production status."""
    chars = category.characteristics
    name = category.name.lower()

    if gender == "male":
        if age_days < CALF_MAX_AGE_DAYS or chars.growth_phase or "calf" in name:
            return "calf"
        return "bull"

    if chars.lactating or "lactating" in name:
        return "lactating"
    if chars.pregnant or "served" in name or "pregnant" in name or "in-calf" in name:
        return "served"
    if "dry" in name:
        return "dry"
    if chars.growth_phase or "young" in name:
        if age_days < CALF_MAX_AGE_DAYS or "calf" in name:
            return "calf"
        return "heifer"
    if "calf" in name:
        return "calf"
    if "heifer" in name:
        return "heifer"
    return default_status(age_days, gender)


def classify(birth_date: Optional[DateLike], gender, categories=None, today=None) -> Classification:
    """Resolve the production status an animal's age and gender imply."""
    gender = check_gender(gender)
    age_days = calculate_age_days(birth_date, today)

    category = find_matching_category(categories, age_days, gender)
    if category is None:
        status, source = default_status(age_days, gender), "default"
    elif category.production_status:
        if is_valid_status_for_gender(category.production_status, gender):
            status, source = category.production_status, "category"
        else:
            logger.warning(
                f"Category '{category.name}' maps to '{category.production_status}' "
                f"which is not valid for a {gender}; using default rules"
            )
            status, source = default_status(age_days, gender), "default"
    else:
        status, source = map_characteristics(category, age_days, gender), "characteristics"

    logger.debug(f"Classified {gender} aged {age_days} days as {status} ({source})")
    return Classification(
        production_status=status,
        age_days=age_days,
        age_months=age_in_months(age_days),
        matching_category=MatchedCategory(id=category.id, name=category.name) if category else None,
        source=source,
    )


def find_overlapping_categories(categories) -> List[tuple]:
    """Pairs of category names whose age bands overlap for a shared gender.

    Overlaps are legal (first match wins) but usually a configuration slip.
    """
    ordered = ordered_categories(categories)
    overlaps = []
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if first.gender and second.gender and first.gender != second.gender:
                continue
            low = max(first.min_age_days or 0, second.min_age_days or 0)
            high = min(
                first.max_age_days if first.max_age_days is not None else math.inf,
                second.max_age_days if second.max_age_days is not None else math.inf,
            )
            if low <= high:
                overlaps.append((first.name, second.name))
    return overlaps
