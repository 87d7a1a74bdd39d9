import asyncio
import logging
import sys
from sqlalchemy.future import select
from dairyherd.database import engine, SessionLocal
from dairyherd.models import AnimalCategory, Base, Farm, FarmBreedingSettings
from dairyherd.schemas import BreedingSettings

logger = logging.getLogger("seed")

DEFAULT_CATEGORIES = [
    dict(name="Calves", min_age_days=0, max_age_days=180, gender=None,
         production_status="calf", characteristics={"growth_phase": True}, sort_order=1),
    dict(name="Heifers", min_age_days=181, max_age_days=730, gender="female",
         production_status="heifer", characteristics={"growth_phase": True}, sort_order=2),
    dict(name="Breeding Bulls", min_age_days=181, max_age_days=None, gender="male",
         production_status="bull", characteristics={"breeding_male": True}, sort_order=3),
    dict(name="Mature Cows", min_age_days=731, max_age_days=None, gender="female",
         production_status="dry", characteristics={}, sort_order=4),
]


async def seed_farm(farm_id: int):
    async with SessionLocal() as session:
        farm = await session.get(Farm, farm_id)
        if farm is None:
            logger.error(f"Farm {farm_id} does not exist")
            return

        result = await session.execute(select(AnimalCategory).filter(AnimalCategory.farm_id == farm_id))
        if result.scalars().first():
            logger.info("Categories already exist. Skipping.")
        else:
            logger.info(f"Seeding animal categories for farm {farm_id}...")
            session.add_all([AnimalCategory(farm_id=farm_id, **c) for c in DEFAULT_CATEGORIES])

        result = await session.execute(
            select(FarmBreedingSettings).filter(FarmBreedingSettings.farm_id == farm_id)
        )
        if result.scalars().first():
            logger.info("Breeding settings already exist. Skipping.")
        else:
            logger.info(f"Seeding default breeding settings for farm {farm_id}...")
            defaults = BreedingSettings().model_dump(exclude={"dry_period_days"})
            session.add(FarmBreedingSettings(farm_id=farm_id, **defaults))

        await session.commit()
        logger.info("Seeding Complete!")


async def main(farm_id: int):
    # Ensure tables exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await seed_farm(farm_id)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) != 2:
        print("usage: python seed.py <farm_id>")
        sys.exit(1)
    asyncio.run(main(int(sys.argv[1])))
