import re
import uuid
import enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from edualert.core.time_utils import get_utc_now
from edualert.db.base import Base
from edualert.models.user import _enum_values

REFERENCE_PATTERN = re.compile(r'^EDU\d{8}$')


class ReportStatus(str, enum.Enum):
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    CLOSED = 'closed'

class ReportPriority(str, enum.Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'

class ReporterType(str, enum.Enum):
    STUDENT = 'student'
    PARENT = 'parent'
    OTHER = 'other'

class AnalysisStatus(str, enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    CLOSED = 'closed'


class Report(Base):
    __tablename__ = "reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference_number = Column(String(15), unique=True, nullable=False, index=True)  # EDU + year + 4 digits

    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    grade = Column(String(50), nullable=False)
    teacher_name = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    reporter_type = Column(Enum(ReporterType, name="reporter_type", values_callable=_enum_values), nullable=False)
    description = Column(Text, nullable=False)

    status = Column(Enum(ReportStatus, name="report_status", values_callable=_enum_values), default=ReportStatus.OPEN, nullable=False, index=True)
    priority = Column(Enum(ReportPriority, name="report_priority", values_callable=_enum_values), default=ReportPriority.MEDIUM, nullable=False, index=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    # Automated triage tracking
    analysis_status = Column(Enum(AnalysisStatus, name="analysis_status", values_callable=_enum_values), default=AnalysisStatus.PENDING, nullable=False)
    analysis_attempts = Column(Integer, default=0, nullable=False)
    analysis_last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now, nullable=False)

    school = relationship("School", lazy="joined")
    comments = relationship("ReportComment", back_populates="report", cascade="all, delete-orphan", order_by="ReportComment.created_at")
    assignments = relationship("ReportAssignment", back_populates="report", cascade="all, delete-orphan")

    @staticmethod
    def validate_reference_number(reference_number: str) -> bool:
        """
        Validate reference format: EDU + 4-digit year + 4 digits.
        """
        if not reference_number:
            return False
        return bool(REFERENCE_PATTERN.match(reference_number))


class ReportAssignment(Base):
    __tablename__ = "report_assignments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(UUID(as_uuid=True), ForeignKey("reports.id"), nullable=False, index=True)
    officer_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    removed_at = Column(DateTime(timezone=True), nullable=True)

    report = relationship("Report", back_populates="assignments")
    officer = relationship("User", foreign_keys=[officer_id], lazy="joined")


class ReportComment(Base):
    """Append-only audit trail. A NULL user_id is the automated system author."""
    __tablename__ = "report_comments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(UUID(as_uuid=True), ForeignKey("reports.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)

    report = relationship("Report", back_populates="comments")
    author = relationship("User", lazy="joined")
