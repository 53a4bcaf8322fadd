from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.api import deps
from edualert.db.session import get_db
from edualert.models.user import User, UserRole
from edualert.schemas.common import AckResponse
from edualert.schemas.officer import (
    OfficerBrief, OfficersResponse, ManagedOfficersResponse,
    OfficerCreateRequest, OfficerCreateResponse, OfficerUpdateRequest,
    OfficerSubscriptionsResponse, SubscriptionCreateResponse, SubscriptionPair,
)
from edualert.schemas.reference import RegionOut, SchoolLevelOut
from edualert.services.officer_service import OfficerService
from edualert.services.subscription_service import SubscriptionService, to_out

router = APIRouter()


@router.get("", response_model=OfficersResponse)
async def list_officers(
    q: Optional[str] = None,
    role: Optional[UserRole] = None,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Users that reports can be assigned to."""
    officers = await OfficerService.list_assignable(db, q, role)
    return OfficersResponse(officers=[OfficerBrief.from_model(o) for o in officers])


# Administration

@router.get("/manage", response_model=ManagedOfficersResponse)
async def list_managed_officers(
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return ManagedOfficersResponse(officers=await OfficerService.list_managed(db))


@router.post("/manage", response_model=OfficerCreateResponse, status_code=201)
async def create_officer(
    request: OfficerCreateRequest,
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    officer = await OfficerService.create_officer(db, request, current_user)
    return OfficerCreateResponse(message="Officer created successfully", officer=OfficerService.to_managed(officer))


@router.patch("/manage/{officer_id}", response_model=OfficerCreateResponse)
async def update_officer(
    officer_id: UUID,
    request: OfficerUpdateRequest,
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    officer = await OfficerService.update_officer(db, officer_id, request, current_user)
    count = await OfficerService.subscription_count(db, officer.id)
    return OfficerCreateResponse(message="Officer updated successfully", officer=OfficerService.to_managed(officer, count))


@router.delete("/manage/{officer_id}", response_model=AckResponse)
async def delete_officer(
    officer_id: UUID,
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await OfficerService.delete_officer(db, officer_id, current_user)
    return AckResponse(message="Officer deleted successfully")


# Subscriptions

@router.get("/{officer_id}/subscriptions", response_model=OfficerSubscriptionsResponse)
async def read_officer_subscriptions(
    officer_id: UUID,
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    officer = await OfficerService.get_officer(db, officer_id)
    subscriptions = await SubscriptionService.list_active(db, officer.id)
    regions, levels = await SubscriptionService.reference_options(db)
    return OfficerSubscriptionsResponse(
        officer=OfficerBrief.from_model(officer),
        regions=[RegionOut.model_validate(r) for r in regions],
        school_levels=[SchoolLevelOut.model_validate(lv) for lv in levels],
        subscriptions=[to_out(s) for s in subscriptions],
    )


@router.post("/{officer_id}/subscriptions", response_model=SubscriptionCreateResponse, status_code=201)
async def add_officer_subscription(
    officer_id: UUID,
    request: SubscriptionPair,
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    officer = await OfficerService.get_officer(db, officer_id)
    subscription = await SubscriptionService.add(db, officer.id, request)
    return SubscriptionCreateResponse(message="Subscription added successfully", subscription=to_out(subscription))


@router.delete("/{officer_id}/subscriptions", response_model=AckResponse)
async def remove_officer_subscription(
    officer_id: UUID,
    subscription_id: UUID = Query(..., alias="subscriptionId"),
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await SubscriptionService.remove(db, officer_id, subscription_id)
    return AckResponse(message="Subscription removed successfully")
