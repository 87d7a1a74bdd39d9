"""
Test: Breeding settings
Range rules run in order and stop at the first violation.
"""
import pydantic
import pytest

from dairyherd.schemas import BreedingSettings
from dairyherd.services.errors import ValidationError
from dairyherd.services.settings_rules import validate_breeding_settings


def unchecked(**overrides):
    """Settings built without running the validator."""
    return BreedingSettings.model_construct(**overrides)


def test_defaults_are_valid():
    settings = BreedingSettings()

    validate_breeding_settings(settings)
    assert settings.minimum_breeding_age_months == 15
    assert settings.default_gestation == 280
    assert settings.days_pregnant_at_dryoff == 220
    assert settings.dry_period_days == 60
    assert settings.alert_type == ["app", "sms"]


@pytest.mark.parametrize("field, value, message", [
    ("minimum_breeding_age_months", 11, "Minimum breeding age must be between 12 and 24 months"),
    ("minimum_breeding_age_months", 25, "Minimum breeding age must be between 12 and 24 months"),
    ("default_cycle_interval", 36, "Default cycle interval must be between 15 and 35 days"),
    ("missed_heat_alert", 19, "Missed heat alert must be between 20 and 60 days"),
    ("pregnancy_check_days", 91, "Pregnancy check days must be between 30 and 90 days"),
    ("diagnosis_interval", 29, "Diagnosis interval must be between 30 and 90 days"),
    ("heat_retry_days", 14, "Heat retry days must be between 15 and 35 days"),
    ("default_gestation", 301, "Default gestation must be between 260 and 300 days"),
    ("postpartum_breeding_delay_days", 121, "Postpartum breeding delay must be between 30 and 120 days"),
    ("days_pregnant_at_dryoff", 179, "Days pregnant at dry-off must be between 180 and 250 days"),
    ("cost_per_ai", -1, "Cost per AI cannot be negative"),
    ("alert_type", [], "At least one alert type must be selected"),
    ("alert_type", ["app", "email"], "Invalid alert type: email"),
])
def test_rule_violations(field, value, message):
    with pytest.raises(ValidationError) as exc:
        validate_breeding_settings(unchecked(**{field: value}))
    assert exc.value.field == field
    assert exc.value.message == message


def test_range_bounds_are_inclusive():
    validate_breeding_settings(unchecked(minimum_breeding_age_months=12, default_cycle_interval=35))
    validate_breeding_settings(unchecked(minimum_breeding_age_months=24, default_cycle_interval=15))


def test_first_violation_wins():
    settings = unchecked(minimum_breeding_age_months=30, default_gestation=100, alert_type=[])
    with pytest.raises(ValidationError) as exc:
        validate_breeding_settings(settings)
    assert exc.value.field == "minimum_breeding_age_months"


@pytest.mark.parametrize("gestation, dryoff", [(300, 200), (260, 240)])
def test_dry_period_must_be_thirty_to_ninety_days(gestation, dryoff):
    with pytest.raises(ValidationError) as exc:
        validate_breeding_settings(unchecked(default_gestation=gestation, days_pregnant_at_dryoff=dryoff))
    assert exc.value.message == "Calculated dry period should be between 30-90 days"


def test_missing_value_is_required():
    with pytest.raises(ValidationError) as exc:
        validate_breeding_settings(unchecked(default_gestation=None))
    assert exc.value.message == "is required"


def test_model_rejects_invalid_settings():
    with pytest.raises(pydantic.ValidationError, match="Cost per AI cannot be negative") as exc:
        BreedingSettings(cost_per_ai=-10)
    assert exc.value.errors()[0]["ctx"] == {"field": "cost_per_ai"}


def test_camel_case_input():
    settings = BreedingSettings(**{
        "minimumBreedingAgeMonths": 18,
        "defaultGestationPeriod": 283,
        "heatCycleDays": 22,
        "alertType": ["whatsapp"],
        "autoCreateDryOff": False,
    })

    assert settings.minimum_breeding_age_months == 18
    assert settings.default_gestation == 283
    assert settings.default_cycle_interval == 22
    assert settings.alert_type == ["whatsapp"]
    assert settings.auto_create_dry_off is False
    assert settings.dry_period_days == 63


def test_by_field_name_rekeys_and_drops_unknown_keys():
    data = BreedingSettings.by_field_name({"heatCycleDays": 25, "cost_per_ai": 0, "farm": "x"})
    assert data == {"default_cycle_interval": 25, "cost_per_ai": 0}


def test_dump_includes_dry_period():
    assert BreedingSettings().model_dump()["dry_period_days"] == 60
