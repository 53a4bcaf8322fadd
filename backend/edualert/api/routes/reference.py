from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.db.session import get_db
from edualert.models.reference import Region, School, SchoolLevel
from edualert.schemas.reference import (
    RegionOut, RegionsResponse, SchoolLevelOut, SchoolLevelsResponse, SchoolOut, SchoolsResponse,
)

router = APIRouter()


@router.get("/regions", response_model=RegionsResponse)
async def list_regions(db: AsyncSession = Depends(get_db)) -> Any:
    result = await db.execute(select(Region).order_by(Region.id))
    return RegionsResponse(regions=[RegionOut.model_validate(r) for r in result.scalars().all()])


@router.get("/school-levels", response_model=SchoolLevelsResponse)
async def list_school_levels(db: AsyncSession = Depends(get_db)) -> Any:
    result = await db.execute(select(SchoolLevel).order_by(SchoolLevel.id))
    return SchoolLevelsResponse(school_levels=[SchoolLevelOut.model_validate(lv) for lv in result.scalars().all()])


@router.get("/schools", response_model=SchoolsResponse)
async def list_schools(
    region_id: Optional[int] = Query(None, alias="regionId"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    stmt = select(School).order_by(School.name)
    if region_id is not None:
        stmt = stmt.where(School.region_id == region_id)
    result = await db.execute(stmt)
    return SchoolsResponse(schools=[SchoolOut.model_validate(s) for s in result.scalars().unique().all()])
