"""
Shared fixtures: a fixed "today" so day arithmetic is reproducible, and a
factory for animal snapshots expressed in ages rather than dates.
"""
from datetime import date, timedelta

import pytest

from dairyherd.schemas import AnimalSnapshot, BreedingSettings

TODAY = date(2025, 6, 15)


def days_ago(days: int) -> date:
    return TODAY - timedelta(days=days)


def make_animal(age_days=600, gender="female", production_status="heifer", health_status="healthy", **fields):
    return AnimalSnapshot(
        id=fields.pop("id", 1),
        farm_id=fields.pop("farm_id", 1),
        gender=gender,
        birth_date=days_ago(age_days),
        production_status=production_status,
        health_status=health_status,
        **fields,
    )


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def settings():
    return BreedingSettings()
