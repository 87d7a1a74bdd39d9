"""
Write-time rules for farm breeding settings.

Checks run in a fixed order and stop at the first violation so the caller
always gets a single, specific message.
"""
from .errors import ValidationError

VALID_ALERT_TYPES = ("app", "sms", "whatsapp")

# (attribute, low, high, message)
RANGE_RULES = [
    ("minimum_breeding_age_months", 12, 24, "Minimum breeding age must be between 12 and 24 months"),
    ("default_cycle_interval", 15, 35, "Default cycle interval must be between 15 and 35 days"),
    ("missed_heat_alert", 20, 60, "Missed heat alert must be between 20 and 60 days"),
    ("pregnancy_check_days", 30, 90, "Pregnancy check days must be between 30 and 90 days"),
    ("diagnosis_interval", 30, 90, "Diagnosis interval must be between 30 and 90 days"),
    ("heat_retry_days", 15, 35, "Heat retry days must be between 15 and 35 days"),
    ("default_gestation", 260, 300, "Default gestation must be between 260 and 300 days"),
]

MIN_DRY_PERIOD_DAYS = 30
MAX_DRY_PERIOD_DAYS = 90


def _require(settings, field: str):
    value = getattr(settings, field, None)
    if value is None:
        raise ValidationError(field, "is required")
    return value


def validate_breeding_settings(settings) -> None:
    """Raise ValidationError for the first rule ``settings`` breaks."""
    for field, low, high, message in RANGE_RULES:
        value = _require(settings, field)
        if value < low or value > high:
            raise ValidationError(field, message)

    cost = getattr(settings, "cost_per_ai", None)
    if cost is not None and cost < 0:
        raise ValidationError("cost_per_ai", "Cost per AI cannot be negative")

    alert_types = getattr(settings, "alert_type", None)
    if not alert_types:
        raise ValidationError("alert_type", "At least one alert type must be selected")

    delay = _require(settings, "postpartum_breeding_delay_days")
    if delay < 30 or delay > 120:
        raise ValidationError(
            "postpartum_breeding_delay_days",
            "Postpartum breeding delay must be between 30 and 120 days",
        )

    for alert in alert_types:
        if alert not in VALID_ALERT_TYPES:
            raise ValidationError("alert_type", f"Invalid alert type: {alert}")

    dryoff = _require(settings, "days_pregnant_at_dryoff")
    if dryoff < 180 or dryoff > 250:
        raise ValidationError(
            "days_pregnant_at_dryoff",
            "Days pregnant at dry-off must be between 180 and 250 days",
        )

    gestation = settings.default_gestation
    if dryoff >= gestation:
        raise ValidationError("days_pregnant_at_dryoff", "Dry-off must occur before expected calving date")

    dry_period = gestation - dryoff
    if dry_period < MIN_DRY_PERIOD_DAYS or dry_period > MAX_DRY_PERIOD_DAYS:
        raise ValidationError("days_pregnant_at_dryoff", "Calculated dry period should be between 30-90 days")
