from pydantic import BaseModel, Field, AliasChoices, field_validator, model_validator, computed_field
from pydantic_core import PydanticCustomError
from typing import Optional, List, Dict
from datetime import date, datetime
from enum import Enum

from .services.errors import ValidationError as EngineValidationError
from .services.settings_rules import validate_breeding_settings

# ==================== ENUMS ====================

class Gender(str, Enum):
    male = "male"
    female = "female"

class ProductionStatus(str, Enum):
    calf = "calf"
    heifer = "heifer"
    served = "served"
    lactating = "lactating"
    dry = "dry"
    bull = "bull"

class HealthStatus(str, Enum):
    healthy = "healthy"
    sick = "sick"
    quarantined = "quarantined"
    requires_attention = "requires_attention"
    under_treatment = "under_treatment"
    recovering = "recovering"

class AlertType(str, Enum):
    app = "app"
    sms = "sms"
    whatsapp = "whatsapp"

class RoleType(str, Enum):
    farm_owner = "farm_owner"
    farm_manager = "farm_manager"
    worker = "worker"
    viewer = "viewer"


def _lower(value):
    if isinstance(value, str):
        return value.strip().lower() or None
    return value

# ==================== ANIMAL CATEGORY ====================

class CategoryCharacteristics(BaseModel):
    lactating: bool = False
    pregnant: bool = False
    breeding_male: bool = False
    growth_phase: bool = False

class AnimalCategoryBase(BaseModel):
    name: str
    min_age_days: Optional[int] = Field(default=None, ge=0)
    max_age_days: Optional[int] = Field(default=None, ge=0)
    gender: Optional[Gender] = None
    production_status: Optional[ProductionStatus] = None
    characteristics: CategoryCharacteristics = Field(default_factory=CategoryCharacteristics)
    sort_order: int = 0

    normalise_enums = field_validator("gender", "production_status", mode="before")(_lower)

    @field_validator("characteristics", mode="before")
    @classmethod
    def _empty_characteristics(cls, value):
        return value or {}

    class Config:
        use_enum_values = True

class AnimalCategoryCreate(AnimalCategoryBase):
    @model_validator(mode="after")
    def _check_range(self):
        if self.max_age_days is not None and self.min_age_days is not None \
                and self.max_age_days < self.min_age_days:
            raise ValueError("max_age_days must not be less than min_age_days")
        return self

class AnimalCategory(AnimalCategoryBase):
    """A farm-defined age/gender band mapped to a production status."""
    id: Optional[int] = None

    class Config:
        from_attributes = True
        use_enum_values = True

# ==================== BREEDING SETTINGS ====================

class BreedingSettings(BaseModel):
    """Per-farm breeding rules.

    Every instance is checked against the write-time range rules, so the
    engine can trust what it is handed. Input accepts both the snake_case
    column names and the camelCase names used by the web client.
    """
    minimum_breeding_age_months: int = Field(
        default=15, validation_alias=AliasChoices("minimum_breeding_age_months", "minimumBreedingAgeMonths"))
    default_gestation: int = Field(
        default=280,
        validation_alias=AliasChoices("default_gestation", "defaultGestation", "defaultGestationPeriod"))
    days_pregnant_at_dryoff: int = Field(
        default=220, validation_alias=AliasChoices("days_pregnant_at_dryoff", "daysPregnantAtDryoff"))
    postpartum_breeding_delay_days: int = Field(
        default=60,
        validation_alias=AliasChoices("postpartum_breeding_delay_days", "postpartumBreedingDelayDays"))
    default_cycle_interval: int = Field(
        default=21,
        validation_alias=AliasChoices("default_cycle_interval", "defaultCycleInterval", "heatCycleDays"))
    pregnancy_check_days: int = Field(
        default=45, validation_alias=AliasChoices("pregnancy_check_days", "pregnancyCheckDays"))
    missed_heat_alert: int = Field(
        default=25, validation_alias=AliasChoices("missed_heat_alert", "missedHeatAlert"))
    heat_retry_days: int = Field(
        default=21, validation_alias=AliasChoices("heat_retry_days", "heatRetryDays"))
    diagnosis_interval: int = Field(
        default=45, validation_alias=AliasChoices("diagnosis_interval", "diagnosisInterval"))
    cost_per_ai: Optional[float] = Field(
        default=500.0, validation_alias=AliasChoices("cost_per_ai", "costPerAI"))
    alert_type: List[str] = Field(
        default_factory=lambda: ["app", "sms"], validation_alias=AliasChoices("alert_type", "alertType"))

    auto_schedule_pregnancy_check: bool = Field(
        default=True,
        validation_alias=AliasChoices("auto_schedule_pregnancy_check", "autoSchedulePregnancyCheck"))
    auto_create_dry_off: bool = Field(
        default=True, validation_alias=AliasChoices("auto_create_dry_off", "autoCreateDryOff"))
    auto_create_lactation: bool = Field(
        default=True, validation_alias=AliasChoices("auto_create_lactation", "autoCreateLactation"))
    auto_create_next_event: bool = Field(
        default=True, validation_alias=AliasChoices("auto_create_next_event", "autoCreateNextEvent"))

    class Config:
        from_attributes = True
        populate_by_name = True

    @model_validator(mode="after")
    def _check_rules(self):
        try:
            validate_breeding_settings(self)
        except EngineValidationError as e:
            raise PydanticCustomError("breeding_settings", e.message, {"field": e.field}) from e
        return self

    @classmethod
    def by_field_name(cls, data: dict) -> dict:
        """Re-key client input to field names; unknown keys are dropped."""
        lookup = {}
        for name, info in cls.model_fields.items():
            lookup[name] = name
            if isinstance(info.validation_alias, AliasChoices):
                for choice in info.validation_alias.choices:
                    lookup[choice] = name
        return {lookup[key]: value for key, value in data.items() if key in lookup}

    @computed_field
    @property
    def dry_period_days(self) -> int:
        return self.default_gestation - self.days_pregnant_at_dryoff

class BreedingSettingsResponse(BreedingSettings):
    farm_id: Optional[int] = None
    is_default: bool = False

# ==================== ANIMAL ====================

class AnimalSnapshot(BaseModel):
    """The fields of an animal record the engine reads."""
    id: Optional[int] = None
    farm_id: Optional[int] = None
    gender: Optional[Gender] = None
    birth_date: Optional[date] = None
    production_status: Optional[ProductionStatus] = None
    health_status: Optional[HealthStatus] = None
    service_date: Optional[date] = None
    expected_calving_date: Optional[date] = None
    dry_off_date: Optional[date] = None

    normalise_enums = field_validator("gender", "production_status", "health_status", mode="before")(_lower)

    class Config:
        from_attributes = True
        use_enum_values = True

class AnimalCreate(BaseModel):
    """Schema for registering an animal; production status is derived when omitted."""
    tag_id: str
    gender: Gender
    birth_date: date
    breed: Optional[str] = None
    production_status: Optional[ProductionStatus] = None
    health_status: HealthStatus = HealthStatus.healthy

    normalise_enums = field_validator("gender", "production_status", "health_status", mode="before")(_lower)

class Animal(BaseModel):
    """Full animal response schema"""
    id: int
    farm_id: int
    tag_id: str
    breed: Optional[str]
    gender: str
    birth_date: Optional[date]
    production_status: Optional[str]
    health_status: Optional[str]
    service_date: Optional[date]
    expected_calving_date: Optional[date]
    dry_off_date: Optional[date]
    last_milking_date: Optional[date]
    days_in_milk: Optional[int]
    current_daily_production: Optional[float]

    class Config:
        from_attributes = True

# ==================== ENGINE RESULTS ====================

class MatchedCategory(BaseModel):
    id: Optional[int] = None
    name: str

class Classification(BaseModel):
    production_status: str
    age_days: int
    age_months: int
    matching_category: Optional[MatchedCategory] = None
    source: str = "default"  # 'category', 'characteristics' or 'default'

class BreedingEligibility(BaseModel):
    can_breed: bool = True
    reasons: List[str] = Field(default_factory=list)
    blockers: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    next_breeding_date: Optional[str] = None

class DryOffStatus(BaseModel):
    show_dry_off_button: bool = False
    should_dry_off: bool = False
    days_until_dry_off: int = 0
    button_starts_in_days: int = 0
    days_pregnant: Optional[int] = None
    days_pregnant_at_dryoff: int
    days_until_calving: Optional[int] = None
    expected_calving_date: Optional[str] = None
    reason: str

class ScheduledEvent(BaseModel):
    event_type: str  # dry_off, pregnancy_check, dry_off_scheduled, calving_expected, breeding_eligible
    scheduled_date: str
    notes: Optional[str] = None

class TransitionPlan(BaseModel):
    """Field updates the caller must apply in one write, guarded by expected_status."""
    animal_id: Optional[int] = None
    expected_status: Optional[str] = None
    target_status: str
    updates: Dict[str, object] = Field(default_factory=dict)
    events: List[ScheduledEvent] = Field(default_factory=list)

# ==================== REQUESTS ====================

class ProductionStatusRequest(BaseModel):
    birth_date: Optional[str] = None
    gender: Optional[str] = None

class ProductionStatusRecalculation(BaseModel):
    current_production_status: Optional[str]
    calculated_production_status: Optional[str]
    should_update: bool
    age_days: int
    age_months: int
    has_breeding_context: bool = False
    message: Optional[str] = None

class StatusChangeRequest(BaseModel):
    production_status: ProductionStatus
    dry_off_date: Optional[date] = None

    normalise_enums = field_validator("production_status", mode="before")(_lower)

class StatusChangeResponse(BaseModel):
    animal: Animal
    previous_status: Optional[str]
    message: str

class BreedingRecordCreate(BaseModel):
    breeding_date: date
    method: str = "ai"
    sire: Optional[str] = None
    technician: Optional[str] = None
    notes: Optional[str] = None

class PregnancyConfirmation(BaseModel):
    confirmation_date: date
    expected_calving_date: Optional[date] = None

class CalvingCreate(BaseModel):
    calving_date: date
    notes: Optional[str] = None

class BreedingRecord(BaseModel):
    id: int
    animal_id: int
    breeding_date: date
    method: Optional[str]
    sire: Optional[str]
    pregnancy_confirmed_date: Optional[date]
    expected_calving_date: Optional[date]
    actual_calving_date: Optional[date]

    class Config:
        from_attributes = True

class BreedingEventResponse(BaseModel):
    animal: Animal
    record: BreedingRecord
    events: List[ScheduledEvent]

# ==================== USER ====================

class UserCreate(BaseModel):
    phone_number: str
    farm_name: str = "My Farm"

class User(BaseModel):
    id: int
    firebase_uid: str
    phone_number: Optional[str]
    role: Optional[str]
    farm_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True
