from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import Field

from edualert.models.user import User, UserRole
from edualert.schemas.common import APIModel
from edualert.schemas.reference import RegionOut, SchoolLevelOut


class OfficerBrief(APIModel):
    id: UUID
    name: Optional[str] = None
    email: str
    position: Optional[str] = None
    role: UserRole

    @classmethod
    def from_model(cls, user: User) -> "OfficerBrief":
        return cls(id=user.id, name=user.full_name, email=user.email, position=user.position, role=user.role)

class OfficersResponse(APIModel):
    officers: List[OfficerBrief]

class ManagedOfficer(APIModel):
    id: UUID
    full_name: Optional[str] = None
    email: str
    position: Optional[str] = None
    role: UserRole
    is_approved: bool
    is_verified: bool
    created_at: datetime
    subscription_count: int = 0

class ManagedOfficersResponse(APIModel):
    officers: List[ManagedOfficer]

class OfficerCreateRequest(APIModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    full_name: Optional[str] = None
    position: Optional[str] = None
    role: UserRole = UserRole.OFFICER

class OfficerCreateResponse(APIModel):
    message: str
    officer: ManagedOfficer

class OfficerUpdateRequest(APIModel):
    full_name: Optional[str] = None
    position: Optional[str] = None
    role: Optional[UserRole] = None
    is_approved: Optional[bool] = None
    password: Optional[str] = None


class SubscriptionPair(APIModel):
    region_id: int
    school_level_id: int

class SubscriptionOut(APIModel):
    id: UUID
    region_id: int
    region_name: str
    school_level_id: int
    school_level_name: str
    created_at: datetime

class SubscriptionsReplaceRequest(APIModel):
    subscriptions: List[SubscriptionPair]

class MySubscriptionsResponse(APIModel):
    subscriptions: List[SubscriptionOut]
    available_regions: List[RegionOut]
    available_school_levels: List[SchoolLevelOut]

class OfficerSubscriptionsResponse(APIModel):
    officer: OfficerBrief
    regions: List[RegionOut]
    school_levels: List[SchoolLevelOut]
    subscriptions: List[SubscriptionOut]

class SubscriptionCreateResponse(APIModel):
    message: str
    subscription: SubscriptionOut
