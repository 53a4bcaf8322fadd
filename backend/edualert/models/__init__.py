# Import all models so Base.metadata knows about them
from edualert.models.user import User, UserRole, OtpCode, OtpPurpose
from edualert.models.reference import Region, SchoolLevel, School
from edualert.models.subscription import OfficerSubscription
from edualert.models.ai_usage import AiUsage
from edualert.models.report import (
    Report,
    ReportAssignment,
    ReportComment,
    ReportStatus,
    ReportPriority,
    ReporterType,
    AnalysisStatus,
)
