from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update, func
from pydantic import ValidationError as SchemaValidationError
from typing import List, Optional
from datetime import date
import logging
from . import models, schemas, database, auth
from .config import get_settings
from .services import classifier, eligibility, lifecycle
from .services.dates import utc_today
from .services.errors import ValidationError, InvalidTransitionError

from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name, version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Database Dependency
get_db = database.get_db

SETTINGS_EDITORS = ("farm_owner", "farm_manager")
STATUS_EDITORS = ("farm_owner", "farm_manager", "worker")


@app.on_event("startup")
async def startup():
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # In production, use migrations (Alembic). For this setup, auto-create.
    await database.init_db()


@app.exception_handler(ValidationError)
async def engine_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_error(request: Request, exc: InvalidTransitionError):
    return JSONResponse(
        status_code=409,
        content={"detail": exc.message, "current_status": exc.current, "requested_status": exc.target},
    )


@app.get("/health")
def health_check():
    return {"status": "ok", "version": "1.0.0"}

# --- Helpers ---

async def get_farm_animal(db: AsyncSession, animal_id: int, farm_id: int) -> models.Animal:
    stmt = select(models.Animal).filter(
        models.Animal.id == animal_id,
        models.Animal.farm_id == farm_id
    )
    result = await db.execute(stmt)
    animal = result.scalar_one_or_none()
    if not animal:
        raise HTTPException(status_code=404, detail="Animal not found")
    return animal


async def get_farm_breeding_record(db: AsyncSession, record_id: int, farm_id: int) -> models.BreedingRecord:
    stmt = select(models.BreedingRecord).filter(
        models.BreedingRecord.id == record_id,
        models.BreedingRecord.farm_id == farm_id
    )
    result = await db.execute(stmt)
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=404, detail="Breeding record not found")
    return record


async def load_breeding_settings(db: AsyncSession, farm_id: int) -> Optional[models.FarmBreedingSettings]:
    stmt = select(models.FarmBreedingSettings).filter(models.FarmBreedingSettings.farm_id == farm_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_breeding_settings(db: AsyncSession, farm_id: int) -> schemas.BreedingSettings:
    """Farm settings, or the defaults when the farm has not saved any."""
    row = await load_breeding_settings(db, farm_id)
    if row is None:
        return schemas.BreedingSettings()
    return schemas.BreedingSettings.model_validate(row)


async def load_categories(db: AsyncSession, farm_id: int) -> List[models.AnimalCategory]:
    stmt = select(models.AnimalCategory).filter(
        models.AnimalCategory.farm_id == farm_id
    ).order_by(models.AnimalCategory.sort_order, models.AnimalCategory.id)
    result = await db.execute(stmt)
    return result.scalars().all()


async def breeding_history(db: AsyncSession, animal_id: int):
    """(last calving date, last breeding date) from the animal's breeding records."""
    stmt = select(
        func.max(models.BreedingRecord.actual_calving_date),
        func.max(models.BreedingRecord.breeding_date),
    ).filter(models.BreedingRecord.animal_id == animal_id)
    result = await db.execute(stmt)
    last_calving, last_breeding = result.one()
    return last_calving, last_breeding


async def apply_plan(
    db: AsyncSession,
    animal: models.Animal,
    plan: schemas.TransitionPlan,
    user: models.User,
    reason: Optional[str] = None,
):
    """Write a transition plan as one compare-and-swap update plus its side rows."""
    guard = models.Animal.production_status == plan.expected_status
    if plan.expected_status is None:
        guard = models.Animal.production_status.is_(None)

    stmt = (
        update(models.Animal)
        .where(models.Animal.id == animal.id, models.Animal.farm_id == user.farm_id, guard)
        .values(**plan.updates)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        logger.warning(f"Lost status update race on animal {animal.id} (expected {plan.expected_status})")
        await db.rollback()
        raise HTTPException(
            status_code=409,
            detail="Animal was changed by another request. Reload and try again.",
        )

    for event in plan.events:
        db.add(models.BreedingCalendarEvent(
            farm_id=user.farm_id,
            animal_id=animal.id,
            event_type=event.event_type,
            scheduled_date=date.fromisoformat(event.scheduled_date),
            notes=event.notes,
        ))

    if plan.expected_status != plan.target_status:
        db.add(models.AnimalStatusChange(
            farm_id=user.farm_id,
            animal_id=animal.id,
            old_status=plan.expected_status,
            new_status=plan.target_status,
            changed_by=user.id,
            reason=reason or f"Production status updated from {plan.expected_status} to {plan.target_status}",
        ))
        logger.info(f"Animal {animal.id}: {plan.expected_status} -> {plan.target_status}")

    await db.commit()
    await db.refresh(animal)
    return animal

# --- Users ---
@app.post("/users/", response_model=schemas.User)
async def create_user(
    user_data: schemas.UserCreate,
    token_data: dict = Depends(auth.verify_firebase_token),
    db: AsyncSession = Depends(get_db)
):
    firebase_uid = token_data["uid"]

    # Check if user exists
    stmt = select(models.User).filter(models.User.firebase_uid == firebase_uid)
    result = await db.execute(stmt)
    existing_user = result.scalars().first()

    if existing_user:
        return existing_user

    farm = models.Farm(name=user_data.farm_name)
    db.add(farm)
    await db.flush()

    new_user = models.User(
        firebase_uid=firebase_uid,
        phone_number=user_data.phone_number,
        farm_id=farm.id,
        role="farm_owner",
    )
    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)
    return new_user

@app.get("/users/me", response_model=schemas.User)
async def get_current_user_profile(
    user: models.User = Depends(auth.get_current_user),
):
    return user

# --- Breeding Settings ---
@app.get("/breeding-settings", response_model=schemas.BreedingSettingsResponse)
async def read_breeding_settings(
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    row = await load_breeding_settings(db, user.farm_id)
    if row is None:
        return schemas.BreedingSettingsResponse(farm_id=user.farm_id, is_default=True)
    return schemas.BreedingSettingsResponse.model_validate(row)

@app.put("/breeding-settings", response_model=schemas.BreedingSettingsResponse)
async def update_breeding_settings(
    settings_update: dict,
    user: models.User = Depends(auth.require_roles(*SETTINGS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    """Partial update; the merged result must pass every range rule before it is saved."""
    row = await load_breeding_settings(db, user.farm_id)
    current = schemas.BreedingSettings() if row is None else schemas.BreedingSettings.model_validate(row)

    merged = current.model_dump(exclude={"dry_period_days"})
    incoming = schemas.BreedingSettings.by_field_name(settings_update)
    try:
        updated = schemas.BreedingSettings.model_validate({**merged, **incoming})
    except SchemaValidationError as e:
        error = e.errors()[0]
        field = (error.get("ctx") or {}).get("field") or ".".join(str(part) for part in error["loc"])
        raise ValidationError(field or "breeding_settings", error["msg"])

    values = updated.model_dump(exclude={"dry_period_days"})
    if row is None:
        row = models.FarmBreedingSettings(farm_id=user.farm_id, **values)
        db.add(row)
    else:
        for key, value in values.items():
            setattr(row, key, value)

    await db.commit()
    await db.refresh(row)
    logger.info(f"Breeding settings updated for farm {user.farm_id}")
    return schemas.BreedingSettingsResponse.model_validate(row)

# --- Animal Categories ---
@app.get("/animal-categories", response_model=List[schemas.AnimalCategory])
async def get_animal_categories(
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await load_categories(db, user.farm_id)

@app.post("/animal-categories", response_model=schemas.AnimalCategory)
async def create_animal_category(
    category: schemas.AnimalCategoryCreate,
    user: models.User = Depends(auth.require_roles(*SETTINGS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    new_category = models.AnimalCategory(
        farm_id=user.farm_id,
        name=category.name,
        min_age_days=category.min_age_days,
        max_age_days=category.max_age_days,
        gender=category.gender,
        production_status=category.production_status,
        characteristics=category.characteristics.model_dump(),
        sort_order=category.sort_order,
    )
    db.add(new_category)
    await db.commit()
    await db.refresh(new_category)

    overlaps = classifier.find_overlapping_categories(await load_categories(db, user.farm_id))
    if overlaps:
        logger.warning(f"Farm {user.farm_id} has overlapping animal categories: {overlaps}")
    return new_category

# --- Herd ---
@app.post("/herd/", response_model=schemas.Animal)
async def create_animal(
    animal: schemas.AnimalCreate,
    user: models.User = Depends(auth.require_roles(*STATUS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    # Check if tag_id already exists for this farm
    stmt = select(models.Animal).filter(
        models.Animal.farm_id == user.farm_id,
        models.Animal.tag_id == animal.tag_id
    )
    result = await db.execute(stmt)
    if result.scalars().first():
        raise HTTPException(
            status_code=400,
            detail="Tag ID already exists for this farm"
        )

    gender = animal.gender.value
    if animal.production_status:
        initial_status = animal.production_status.value
        age_days = classifier.calculate_age_days(animal.birth_date)
        try:
            lifecycle.validate_status_transition(None, initial_status, age_days, gender)
        except InvalidTransitionError as e:
            raise HTTPException(status_code=400, detail=e.message)
        if initial_status == "served":
            raise HTTPException(status_code=400, detail="Record a breeding to mark an animal as served")
    else:
        categories = await load_categories(db, user.farm_id)
        initial_status = classifier.classify(animal.birth_date, gender, categories).production_status

    new_animal = models.Animal(
        farm_id=user.farm_id,
        tag_id=animal.tag_id,
        breed=animal.breed,
        gender=gender,
        birth_date=animal.birth_date,
        production_status=initial_status,
        health_status=animal.health_status.value,
    )
    db.add(new_animal)
    await db.commit()
    await db.refresh(new_animal)
    return new_animal

@app.get("/herd/", response_model=List[schemas.Animal])
async def get_animals(
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    stmt = select(models.Animal).filter(models.Animal.farm_id == user.farm_id).order_by(models.Animal.id)
    result = await db.execute(stmt)
    return result.scalars().all()

# --- Production Status ---
@app.post("/animals/calculate-production-status", response_model=schemas.Classification)
async def calculate_production_status(
    payload: schemas.ProductionStatusRequest,
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Status a new animal of this birth date and gender would get on this farm."""
    categories = await load_categories(db, user.farm_id)
    return classifier.classify(payload.birth_date, payload.gender, categories)

@app.get("/animals/{animal_id}/production-status", response_model=schemas.ProductionStatusRecalculation)
async def recalculate_production_status(
    animal_id: int,
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_farm_animal(db, animal_id, user.farm_id)

    # Breeding records mean the status came from events, not age
    stmt = select(models.BreedingRecord.id).filter(models.BreedingRecord.animal_id == animal.id).limit(1)
    result = await db.execute(stmt)
    if result.first() is not None:
        age_days = classifier.calculate_age_days(animal.birth_date) if animal.birth_date else 0
        return schemas.ProductionStatusRecalculation(
            current_production_status=animal.production_status,
            calculated_production_status=animal.production_status,
            should_update=False,
            age_days=age_days,
            age_months=classifier.age_in_months(age_days),
            has_breeding_context=True,
            message="Status validated by breeding records",
        )

    categories = await load_categories(db, user.farm_id)
    calculated = classifier.classify(animal.birth_date, animal.gender, categories)
    return schemas.ProductionStatusRecalculation(
        current_production_status=animal.production_status,
        calculated_production_status=calculated.production_status,
        should_update=animal.production_status != calculated.production_status,
        age_days=calculated.age_days,
        age_months=calculated.age_months,
    )

@app.put("/animals/{animal_id}/production-status", response_model=schemas.StatusChangeResponse)
async def update_production_status(
    animal_id: int,
    change: schemas.StatusChangeRequest,
    user: models.User = Depends(auth.require_roles(*STATUS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_farm_animal(db, animal_id, user.farm_id)
    previous_status = animal.production_status
    snapshot = schemas.AnimalSnapshot.model_validate(animal)

    plan = lifecycle.plan_status_change(snapshot, change.production_status.value, change.dry_off_date)
    await apply_plan(db, animal, plan, user)

    return schemas.StatusChangeResponse(
        animal=schemas.Animal.model_validate(animal),
        previous_status=previous_status,
        message=f"Production status updated to {plan.target_status}",
    )

# --- Breeding ---
@app.get("/animals/{animal_id}/breeding-eligibility", response_model=schemas.BreedingEligibility)
async def get_breeding_eligibility(
    animal_id: int,
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_farm_animal(db, animal_id, user.farm_id)
    breeding_settings = await get_breeding_settings(db, user.farm_id)
    last_calving, last_breeding = await breeding_history(db, animal.id)
    return eligibility.evaluate(
        schemas.AnimalSnapshot.model_validate(animal),
        breeding_settings,
        last_calving_date=last_calving,
        last_breeding_date=last_breeding,
    )

@app.get("/animals/{animal_id}/drying-status", response_model=schemas.DryOffStatus)
async def get_drying_status(
    animal_id: int,
    user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_farm_animal(db, animal_id, user.farm_id)
    breeding_settings = await get_breeding_settings(db, user.farm_id)
    result = lifecycle.dry_off_status(schemas.AnimalSnapshot.model_validate(animal), breeding_settings)
    logger.debug(f"Drying status for animal {animal.id}: {result.reason}")
    return result

@app.post("/animals/{animal_id}/breeding-records", response_model=schemas.BreedingEventResponse)
async def record_breeding(
    animal_id: int,
    payload: schemas.BreedingRecordCreate,
    user: models.User = Depends(auth.require_roles(*STATUS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_farm_animal(db, animal_id, user.farm_id)
    if payload.breeding_date > utc_today():
        raise HTTPException(status_code=400, detail="Breeding date cannot be in the future")

    breeding_settings = await get_breeding_settings(db, user.farm_id)
    plan = lifecycle.plan_service(schemas.AnimalSnapshot.model_validate(animal), payload.breeding_date, breeding_settings)

    record = models.BreedingRecord(
        farm_id=user.farm_id,
        animal_id=animal.id,
        breeding_date=payload.breeding_date,
        method=payload.method,
        sire=payload.sire,
        technician=payload.technician,
        notes=payload.notes,
    )
    db.add(record)
    await apply_plan(db, animal, plan, user, reason=f"Bred on {payload.breeding_date.isoformat()}")
    await db.refresh(record)

    return schemas.BreedingEventResponse(
        animal=schemas.Animal.model_validate(animal),
        record=schemas.BreedingRecord.model_validate(record),
        events=plan.events,
    )

@app.post("/breeding-records/{record_id}/pregnancy-confirmation", response_model=schemas.BreedingEventResponse)
async def confirm_pregnancy(
    record_id: int,
    payload: schemas.PregnancyConfirmation,
    user: models.User = Depends(auth.require_roles(*STATUS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    record = await get_farm_breeding_record(db, record_id, user.farm_id)
    animal = await get_farm_animal(db, record.animal_id, user.farm_id)
    breeding_settings = await get_breeding_settings(db, user.farm_id)

    plan = lifecycle.plan_pregnancy_confirmation(
        schemas.AnimalSnapshot.model_validate(animal),
        breeding_settings,
        payload.confirmation_date,
        payload.expected_calving_date,
    )
    record.pregnancy_confirmed_date = payload.confirmation_date
    record.expected_calving_date = plan.updates["expected_calving_date"]
    await apply_plan(db, animal, plan, user)
    await db.refresh(record)

    return schemas.BreedingEventResponse(
        animal=schemas.Animal.model_validate(animal),
        record=schemas.BreedingRecord.model_validate(record),
        events=plan.events,
    )

@app.post("/breeding-records/{record_id}/calving", response_model=schemas.BreedingEventResponse)
async def record_calving(
    record_id: int,
    payload: schemas.CalvingCreate,
    user: models.User = Depends(auth.require_roles(*STATUS_EDITORS)),
    db: AsyncSession = Depends(get_db)
):
    record = await get_farm_breeding_record(db, record_id, user.farm_id)
    if record.actual_calving_date:
        raise HTTPException(status_code=400, detail="Calving already recorded for this breeding")
    animal = await get_farm_animal(db, record.animal_id, user.farm_id)
    breeding_settings = await get_breeding_settings(db, user.farm_id)

    plan = lifecycle.plan_calving(schemas.AnimalSnapshot.model_validate(animal), payload.calving_date, breeding_settings)
    record.actual_calving_date = payload.calving_date
    if payload.notes:
        record.notes = payload.notes
    await apply_plan(db, animal, plan, user, reason=f"Calved on {payload.calving_date.isoformat()}")
    await db.refresh(record)

    return schemas.BreedingEventResponse(
        animal=schemas.Animal.model_validate(animal),
        record=schemas.BreedingRecord.model_validate(record),
        events=plan.events,
    )
