from typing import Any, Optional, Set
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.api import deps
from edualert.db.session import get_db
from edualert.models.user import User
from edualert.schemas.ai import ChatRequest, ChatResponse, UsageEntry, UsageListResponse, UsageOut
from edualert.schemas.common import AckResponse
from edualert.services.chat_service import ChatService
from edualert.services.usage_service import UsageService

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    current_user: User = Depends(deps.get_current_user),
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    reply, usage = await ChatService.chat(db, current_user.id, request.message, visible_ids)
    return ChatResponse(response=reply, usage=UsageOut.model_validate(usage))


@router.get("/usage", response_model=UsageOut)
async def get_usage(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    usage = await UsageService.get_usage(db, current_user.id)
    return UsageOut.model_validate(usage)


@router.delete("/usage", response_model=AckResponse)
async def reset_own_usage(
    current_user: User = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await UsageService.reset(db, current_user.id)
    return AckResponse(message="Usage reset successfully")


@router.get("/admin/usage", response_model=UsageListResponse)
async def list_usage(
    current_user: User = Depends(deps.get_current_manager),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Today's question counts for every user, busiest first."""
    rows = await UsageService.list_today(db)
    return UsageListResponse(usage=[
        UsageEntry(
            user_id=row.user_id,
            full_name=row.user.full_name,
            email=row.user.email,
            role=row.user.role.value,
            questions_asked=row.questions_asked,
            usage_date=row.usage_date,
        )
        for row in rows
    ])


@router.delete("/admin/usage", response_model=AckResponse)
async def reset_user_usage(
    user_id: UUID = Query(..., alias="userId"),
    current_user: User = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await UsageService.reset(db, user_id)
    return AckResponse(message="User usage reset successfully")
