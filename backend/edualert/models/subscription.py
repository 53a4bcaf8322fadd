import uuid
from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from edualert.core.time_utils import get_utc_now
from edualert.db.base import Base


class OfficerSubscription(Base):
    """An officer's interest in one (region, school level) pair. Soft-deleted."""
    __tablename__ = "officer_subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    officer_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=False)
    school_level_id = Column(Integer, ForeignKey("school_levels.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    region = relationship("Region", lazy="joined")
    school_level = relationship("SchoolLevel", lazy="joined")
