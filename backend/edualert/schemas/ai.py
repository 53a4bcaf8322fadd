from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field
from edualert.schemas.common import APIModel


class TriageVerdict(BaseModel):
    """Shape the text-analysis provider must return for a report."""
    isValid: bool = Field(..., description="Whether the report warrants investigation")
    reason: str = Field(..., description="Short explanation of the verdict")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence between 0 and 1")


class ChatRequest(APIModel):
    message: str = Field(..., min_length=1, max_length=4000)


class UsageOut(APIModel):
    questions_used: int
    daily_limit: int
    resets_at: datetime


class ChatResponse(APIModel):
    response: str
    usage: UsageOut


class UsageEntry(APIModel):
    user_id: UUID
    full_name: Optional[str] = None
    email: str
    role: str
    questions_asked: int
    usage_date: date


class UsageListResponse(APIModel):
    usage: List[UsageEntry]
