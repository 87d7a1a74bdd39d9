"""
Test: Breeding eligibility
Each rule in evaluation order, plus the worked scenarios.
"""
from datetime import timedelta
from types import SimpleNamespace

import pytest

from dairyherd.schemas import BreedingSettings
from dairyherd.services.eligibility import evaluate
from dairyherd.services.errors import ValidationError

from .conftest import TODAY, days_ago, make_animal

SIRE_BLOCKER = "Male animals cannot be bred (they are sires)"


def test_heifer_of_twenty_months_can_breed(settings):
    """Scenario A: healthy 20-month heifer, minimum age 15 months."""
    animal = make_animal(age_days=600, production_status="heifer")

    result = evaluate(animal, settings, today=TODAY)

    assert result.can_breed is True
    assert result.blockers == []
    assert result.reasons == [
        "Age: 20 months (meets minimum 15 months)",
        "Production status: heifer (eligible)",
        "Health status: healthy",
    ]
    assert result.recommendations == [
        "First time breeding - consider using proven sire with good ease of calving",
    ]
    assert result.next_breeding_date is None


def test_male_is_never_eligible(settings):
    animal = make_animal(age_days=900, gender="male", production_status="bull")

    result = evaluate(animal, settings, today=TODAY)

    assert result.can_breed is False
    assert result.blockers == [SIRE_BLOCKER]
    assert result.reasons == []
    assert result.recommendations == []


def test_male_check_runs_before_birth_date_is_needed(settings):
    animal = make_animal(gender="male")
    animal.birth_date = None
    assert evaluate(animal, settings, today=TODAY).blockers == [SIRE_BLOCKER]


def test_too_young_reports_days_remaining(settings):
    animal = make_animal(age_days=400)

    result = evaluate(animal, settings, today=TODAY)

    assert result.can_breed is False
    assert result.blockers == ["Too young - minimum breeding age is 15 months (50 days remaining)"]


def test_age_uses_thirty_day_months(settings):
    # 449 days is 14 months by 30-day months, 450 is 15
    assert evaluate(make_animal(age_days=449), settings, today=TODAY).can_breed is False
    assert evaluate(make_animal(age_days=450), settings, today=TODAY).can_breed is True


@pytest.mark.parametrize("status", ["calf", "served", "bull", None])
def test_ineligible_production_status(settings, status):
    animal = make_animal(age_days=900, production_status=status)

    result = evaluate(animal, settings, today=TODAY)

    assert result.can_breed is False
    assert result.blockers == [f'Production status "{status}" is not eligible for breeding']


def test_served_with_calving_date_is_blocked_by_status_rule(settings):
    animal = make_animal(
        age_days=900, production_status="served",
        service_date=days_ago(100), expected_calving_date=TODAY + timedelta(days=180),
    )
    result = evaluate(animal, settings, today=TODAY)
    assert result.blockers == ['Production status "served" is not eligible for breeding']


def test_too_soon_after_calving(settings):
    """Scenario B: calved 40 days ago with a 60 day postpartum delay."""
    animal = make_animal(age_days=1200, production_status="lactating")
    calved = days_ago(40)

    result = evaluate(animal, settings, last_calving_date=calved.isoformat(), today=TODAY)

    assert result.can_breed is False
    assert result.blockers == ["Too soon after calving - must wait 60 days (20 days remaining)"]
    assert result.next_breeding_date == (calved + timedelta(days=60)).isoformat()
    assert result.next_breeding_date == (TODAY + timedelta(days=20)).isoformat()


def test_postpartum_recovery_complete_adds_reason(settings):
    animal = make_animal(age_days=1200, production_status="lactating")

    result = evaluate(animal, settings, last_calving_date=days_ago(90), today=TODAY)

    assert result.can_breed is True
    assert result.reasons[0] == "Postpartum recovery complete (90 days since calving)"
    assert "Currently lactating - breeding will start next lactation cycle" in result.recommendations


def test_calving_exactly_at_delay_is_allowed(settings):
    animal = make_animal(age_days=1200, production_status="lactating")
    assert evaluate(animal, settings, last_calving_date=days_ago(60), today=TODAY).can_breed is True


@pytest.mark.parametrize("health", ["sick", "quarantined"])
def test_blocking_health_status(settings, health):
    animal = make_animal(age_days=900, production_status="dry", health_status=health)

    result = evaluate(animal, settings, today=TODAY)

    assert result.can_breed is False
    assert result.blockers == [f'Health status "{health}" prevents breeding']


def test_requires_attention_does_not_block(settings):
    animal = make_animal(age_days=900, production_status="dry", health_status="requires_attention")

    result = evaluate(animal, settings, today=TODAY)

    assert result.can_breed is True
    assert "Health status: requires_attention" in result.reasons


def test_postpartum_rule_runs_before_health_rule(settings):
    animal = make_animal(age_days=900, production_status="lactating", health_status="sick")

    result = evaluate(animal, settings, last_calving_date=days_ago(10), today=TODAY)

    assert result.blockers == ["Too soon after calving - must wait 60 days (50 days remaining)"]


def test_recent_breeding_is_only_a_recommendation(settings):
    animal = make_animal(age_days=900, production_status="dry")

    result = evaluate(animal, settings, last_breeding_date=days_ago(10), today=TODAY)

    assert result.can_breed is True
    assert result.recommendations == [
        "Recently bred 10 days ago - typical cycle is 21 days",
        "Dry cow ready for breeding",
    ]


def test_breeding_a_full_cycle_ago_adds_nothing(settings):
    animal = make_animal(age_days=900, production_status="dry")
    result = evaluate(animal, settings, last_breeding_date=days_ago(21), today=TODAY)
    assert result.recommendations == ["Dry cow ready for breeding"]


def test_recently_reached_breeding_age(settings):
    # 16 months is inside the three months after the 15 month minimum
    result = evaluate(make_animal(age_days=480), settings, today=TODAY)
    assert "Recently reached breeding age - monitor heat cycles carefully" in result.recommendations

    result = evaluate(make_animal(age_days=540), settings, today=TODAY)
    assert "Recently reached breeding age - monitor heat cycles carefully" not in result.recommendations


def test_missing_health_status_reads_as_healthy(settings):
    animal = make_animal(age_days=900, production_status="dry", health_status=None)
    assert evaluate(animal, settings, today=TODAY).reasons[-1] == "Health status: healthy"


def test_minimum_age_follows_settings():
    strict = BreedingSettings(minimum_breeding_age_months=24)

    result = evaluate(make_animal(age_days=600), strict, today=TODAY)

    assert result.blockers == ["Too young - minimum breeding age is 24 months (120 days remaining)"]


def test_missing_birth_date_for_female_is_a_validation_error(settings):
    animal = make_animal()
    animal.birth_date = None
    with pytest.raises(ValidationError) as exc:
        evaluate(animal, settings, today=TODAY)
    assert exc.value.field == "birth_date"


def test_missing_gender_is_a_validation_error(settings):
    animal = make_animal(age_days=600, gender=None, production_status="heifer")
    with pytest.raises(ValidationError) as exc:
        evaluate(animal, settings, today=TODAY)
    assert exc.value.field == "gender"
    assert exc.value.message == "is required"


def test_bad_calving_date_is_a_validation_error(settings):
    animal = make_animal(age_days=900, production_status="dry")
    with pytest.raises(ValidationError) as exc:
        evaluate(animal, settings, last_calving_date="yesterday", today=TODAY)
    assert exc.value.field == "last_calving_date"


def test_accepts_records_and_dicts(settings):
    row = SimpleNamespace(
        id=9, farm_id=1, gender="Female", birth_date=days_ago(900), production_status="dry",
        health_status="healthy", service_date=None, expected_calving_date=None, dry_off_date=None,
    )
    as_dict = {"gender": "female", "birth_date": days_ago(900).isoformat(), "production_status": "dry"}

    assert evaluate(row, settings, today=TODAY).can_breed is True
    assert evaluate(as_dict, settings, today=TODAY).can_breed is True


def test_evaluation_is_repeatable(settings):
    animal = make_animal(age_days=1200, production_status="lactating")
    first = evaluate(animal, settings, last_calving_date=days_ago(40), today=TODAY)
    second = evaluate(animal, settings, last_calving_date=days_ago(40), today=TODAY)
    assert first == second
