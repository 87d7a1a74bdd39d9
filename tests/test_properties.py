"""
Property tests for the rules that must hold for every animal, not just
the worked examples.
"""
from datetime import date, timedelta

from hypothesis import given, strategies as st

from dairyherd.schemas import BreedingSettings
from dairyherd.services.classifier import classify, is_valid_status_for_gender
from dairyherd.services.dates import parse_date
from dairyherd.services.eligibility import evaluate
from dairyherd.services.lifecycle import dry_off_status, expected_calving_date, expected_dry_off_date

from .conftest import TODAY, days_ago, make_animal

ages = st.integers(min_value=0, max_value=6000)
statuses = st.sampled_from(["calf", "heifer", "served", "lactating", "dry", "bull"])
healths = st.sampled_from(["healthy", "sick", "quarantined", "requires_attention", "recovering"])
genders = st.sampled_from(["male", "female"])


@given(age_days=ages, status=statuses, health=healths)
def test_males_never_breed(age_days, status, health):
    animal = make_animal(age_days=age_days, gender="male", production_status=status, health_status=health)

    result = evaluate(animal, BreedingSettings(), today=TODAY)

    assert result.can_breed is False
    assert result.blockers == ["Male animals cannot be bred (they are sires)"]


@given(min_months=st.integers(min_value=12, max_value=24), data=st.data())
def test_under_age_females_never_breed(min_months, data):
    age_days = data.draw(st.integers(min_value=0, max_value=min_months * 30 - 1))
    settings = BreedingSettings(minimum_breeding_age_months=min_months)

    result = evaluate(make_animal(age_days=age_days, production_status="heifer"), settings, today=TODAY)

    assert result.can_breed is False
    assert len(result.blockers) == 1


@given(age_days=ages, status=statuses, health=healths, calved=st.one_of(st.none(), ages))
def test_blocked_results_carry_one_blocker(age_days, status, health, calved):
    animal = make_animal(age_days=age_days, production_status=status, health_status=health)
    last_calving = days_ago(calved) if calved is not None else None

    result = evaluate(animal, BreedingSettings(), last_calving_date=last_calving, today=TODAY)

    assert result.can_breed is (not result.blockers)
    assert len(result.blockers) <= 1
    assert result == evaluate(animal, BreedingSettings(), last_calving_date=last_calving, today=TODAY)


@given(age_days=ages, gender=genders)
def test_classification_suits_gender(age_days, gender):
    result = classify(days_ago(age_days), gender, [], today=TODAY)

    assert result.age_days == age_days
    assert result.age_months == age_days // 30
    assert is_valid_status_for_gender(result.production_status, gender)


@given(st.dates())
def test_iso_dates_round_trip(value):
    assert parse_date(value.isoformat()) == value


@given(
    service=st.dates(min_value=date(1900, 1, 1), max_value=date(2200, 12, 31)),
    gestation=st.integers(min_value=260, max_value=300),
    dryoff=st.integers(min_value=180, max_value=250),
)
def test_dry_off_date_recovered_from_calving_date(service, gestation, dryoff):
    calving = parse_date(expected_calving_date(service, gestation))
    recovered = expected_dry_off_date(calving - timedelta(days=gestation), dryoff)
    assert recovered == expected_dry_off_date(service, dryoff)


@given(threshold=st.integers(min_value=190, max_value=250), days_pregnant=st.integers(min_value=0, max_value=300))
def test_dry_off_flags_follow_threshold(threshold, days_pregnant):
    settings = BreedingSettings(days_pregnant_at_dryoff=threshold)
    animal = make_animal(age_days=1500, production_status="served", service_date=days_ago(days_pregnant))

    status = dry_off_status(animal, settings, today=TODAY)

    assert status.should_dry_off is (days_pregnant >= threshold)
    assert status.show_dry_off_button is (days_pregnant >= threshold - 2)
    assert status.days_until_dry_off == max(0, threshold - 2 - days_pregnant)
    assert status.expected_calving_date == (days_ago(days_pregnant) + timedelta(days=280)).isoformat()
