import asyncio
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core import security
from edualert.core.config import settings
from edualert.core.logging import setup_logging
from edualert.db.base import Base
from edualert.db.session import engine, AsyncSessionLocal
# Trigger model registration
from edualert.models import User, UserRole, Region, SchoolLevel, School

logger = structlog.get_logger()

REGIONS = [
    (1, "Region 1 - Barima-Waini"),
    (2, "Region 2 - Pomeroon-Supenaam"),
    (3, "Region 3 - Essequibo Islands-West Demerara"),
    (4, "Region 4 - Demerara-Mahaica"),
    (5, "Region 5 - Mahaica-Berbice"),
    (6, "Region 6 - East Berbice-Corentyne"),
    (7, "Region 7 - Cuyuni-Mazaruni"),
    (8, "Region 8 - Potaro-Siparuni"),
    (9, "Region 9 - Upper Takutu-Upper Essequibo"),
    (10, "Region 10 - Upper Demerara-Berbice"),
]

SCHOOL_LEVELS = [
    (1, "Nursery"),
    (2, "Primary"),
    (3, "Secondary"),
]

# (id, name, code, region_id, school_level_id)
SCHOOLS = [
    (1, "Mabaruma Primary School", "MPS001", 1, 2),
    (2, "Port Kaituma Secondary School", "PKSS001", 1, 3),
    (3, "Moruca Nursery School", "MNS001", 1, 1),
    (4, "Georgetown Primary School", "GPS001", 4, 2),
    (5, "Queen's College", "QC001", 4, 3),
    (6, "St. Rose's High School", "SRHS001", 4, 3),
    (7, "Brickdam Secondary School", "BSS001", 4, 3),
    (8, "St. Margaret's Primary School", "SMPS001", 4, 2),
    (9, "Stella Maris Primary School", "SMPS002", 4, 2),
    (10, "Happy Hours Nursery School", "HHNS001", 4, 1),
    (11, "New Amsterdam Secondary School", "NASS001", 6, 3),
    (12, "Berbice High School", "BHS001", 6, 3),
    (13, "Canefield Primary School", "CPS001", 6, 2),
    (14, "Mackenzie High School", "MHS001", 10, 3),
    (15, "Linden Primary School", "LPS001", 10, 2),
    (16, "Wismar Secondary School", "WSS001", 10, 3),
    (17, "Anna Regina Primary School", "ARPS001", 2, 2),
    (18, "Anna Regina Secondary School", "ARSS001", 2, 3),
    (19, "Charity Nursery School", "CNS001", 2, 1),
]


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def seed_reference_data(session: AsyncSession):
    """Insert regions, school levels and schools that are not there yet."""
    existing_regions = set((await session.execute(select(Region.id))).scalars().all())
    for region_id, name in REGIONS:
        if region_id not in existing_regions:
            session.add(Region(id=region_id, name=name))

    existing_levels = set((await session.execute(select(SchoolLevel.id))).scalars().all())
    for level_id, name in SCHOOL_LEVELS:
        if level_id not in existing_levels:
            session.add(SchoolLevel(id=level_id, name=name))
    await session.flush()

    existing_schools = set((await session.execute(select(School.id))).scalars().all())
    for school_id, name, code, region_id, level_id in SCHOOLS:
        if school_id not in existing_schools:
            session.add(School(id=school_id, name=name, code=code, region_id=region_id, school_level_id=level_id))
    await session.commit()

async def seed_default_admin(session: AsyncSession):
    if not settings.DEFAULT_ADMIN_PASSWORD:
        logger.warning("default_admin_skipped", reason="DEFAULT_ADMIN_PASSWORD not set")
        return

    email = security.normalize_email(settings.DEFAULT_ADMIN_EMAIL)
    result = await session.execute(select(User).where(User.email == email, User.deleted_at.is_(None)))
    if result.scalar_one_or_none():
        logger.info("default_admin_exists", email=email)
        return

    session.add(User(
        email=email,
        password_hash=security.get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
        full_name="System Administrator",
        position="System Administrator",
        role=UserRole.ADMIN,
        is_approved=True,
        is_verified=True,
    ))
    await session.commit()
    logger.info("default_admin_created", email=email)

async def main():
    logger.info("db_init_start")
    try:
        # Fail fast if the connection hangs (firewall / wrong URL)
        async with asyncio.timeout(settings.DB_QUERY_TIMEOUT_SECONDS):
            await create_tables()
    except TimeoutError:
        logger.error("db_init_timeout", message="Connection to database timed out. Check network/firewall/URL settings.")
        raise

    async with AsyncSessionLocal() as session:
        await seed_reference_data(session)
        await seed_default_admin(session)
    logger.info("db_init_complete")

if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
