"""
TriageService - automated quality gate for newly submitted reports.

Responsibilities:
1. Screen out obvious junk locally (keyboard mashing, placeholder text,
   one-word descriptions) before spending an AI call.
2. Ask the text-analysis provider for a verdict on everything else.
3. FAIL OPEN: if the provider is unavailable the report stays open for
   manual review. Triage never closes a report without a verdict.
4. ACT ONCE: the transition is a compare-and-swap on
   (status=open, analysis_status=pending), so repeated triggers are no-ops.
5. Background runs open their own session, record failures on the report
   and fan out notifications for approved reports.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core.config import settings
from edualert.core.exceptions import ConflictError, EduAlertError, NotFoundError
from edualert.core.time_utils import get_utc_now
from edualert.db import session as db_session
from edualert.db.session import commit_or_raise
from edualert.models.report import Report, ReportComment, ReportStatus, AnalysisStatus
from edualert.schemas.ai import TriageVerdict
from edualert.services.ai_service import GeminiService
from edualert.services.notification_service import NotificationService

logger = structlog.get_logger()

MIN_DESCRIPTION_LENGTH = 10

GIBBERISH_PATTERNS = [
    # Whole-field placeholder values
    re.compile(r"^(?:test(?:ing)?|asdf\w*|qwer\w*|zxcv\w*|dfgh\w*|sdfg\w*|x{3,}|abc|1{3,}|123+)$", re.IGNORECASE),
    # Two-key keyboard mashing, e.g. "sdfsdsfs"
    re.compile(r"^(?:df|sd|fs|ds|as|qw|er|ty|ui|op|zx|cv|bn){3,}$", re.IGNORECASE),
    # Long runs without a vowel, e.g. "dfdsklfsd"
    re.compile(r"\b[b-df-hj-np-tv-xz]{6,}\b", re.IGNORECASE),
    # One letter held down
    re.compile(r"([a-z])\1{4,}", re.IGNORECASE),
]

UNAVAILABLE_VERDICT = TriageVerdict(
    isValid=True,
    reason="AI analysis unavailable - defaulting to manual review",
    confidence=0.5,
)


@dataclass
class TriageOutcome:
    report_id: UUID
    reference_number: str
    action: str  # approved | closed
    reason: str
    confidence: float

    @property
    def message(self) -> str:
        if self.action == AnalysisStatus.CLOSED.value:
            return "Report automatically closed due to insufficient information"
        return "Report approved for investigation"


def is_gibberish(text: Optional[str]) -> bool:
    value = (text or "").strip()
    if not value:
        return False
    return any(pattern.search(value) for pattern in GIBBERISH_PATTERNS)


def prescreen(report: Report) -> Optional[TriageVerdict]:
    """Local rejection of obvious junk. None means 'ask the provider'."""
    if any(is_gibberish(value) for value in (report.teacher_name, report.subject, report.description)):
        return TriageVerdict(
            isValid=False,
            reason="Report contains gibberish or nonsensical text that appears to be test data rather than a genuine educational concern.",
            confidence=0.95,
        )
    if len((report.description or "").strip()) < MIN_DESCRIPTION_LENGTH:
        return TriageVerdict(
            isValid=False,
            reason="Report description is too brief to provide actionable information for investigation.",
            confidence=0.85,
        )
    return None


def _closure_comment(verdict: TriageVerdict) -> str:
    return (
        "AUTOMATED ANALYSIS: This report has been automatically closed due to insufficient information.\n\n"
        f"Reason: {verdict.reason}\n\n"
        f"Confidence Level: {round(verdict.confidence * 100)}%\n\n"
        "If you believe this was closed in error, please contact an administrator to reopen it."
    )


def _approval_comment(verdict: TriageVerdict) -> str:
    return (
        "AUTOMATED ANALYSIS: This report has been reviewed and approved for investigation.\n\n"
        f"Reason: {verdict.reason}\n\n"
        f"Confidence Level: {round(verdict.confidence * 100)}%\n\n"
        "The report is now ready for officer assignment and follow-up."
    )


class TriageService:

    @staticmethod
    def _report_data(report: Report) -> dict:
        return {
            "school_name": report.school.name if report.school else "Unknown School",
            "grade": report.grade,
            "teacher_name": report.teacher_name,
            "subject": report.subject,
            "reporter_type": report.reporter_type.value,
            "description": report.description,
        }

    @classmethod
    async def get_verdict(cls, report: Report) -> TriageVerdict:
        verdict = prescreen(report)
        if verdict is not None:
            logger.info("triage_prescreen_rejected", report_id=str(report.id), confidence=verdict.confidence)
            return verdict

        try:
            verdict = await asyncio.wait_for(
                GeminiService.analyze_report(cls._report_data(report)),
                timeout=settings.TRIAGE_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            logger.warning("triage_ai_timeout", report_id=str(report.id), timeout=settings.TRIAGE_TIMEOUT_SECONDS)
            return UNAVAILABLE_VERDICT
        if verdict is None:
            logger.warning("triage_ai_unavailable", report_id=str(report.id))
            return UNAVAILABLE_VERDICT
        return verdict

    @classmethod
    async def analyze(cls, db: AsyncSession, report_id: UUID) -> TriageOutcome:
        """
        Run triage on one report. Raises NotFoundError for unknown ids and
        ConflictError when the report has already left the pending state.
        """
        report = await db.get(Report, report_id)
        if not report:
            raise NotFoundError("Report not found")
        if report.status != ReportStatus.OPEN or report.analysis_status != AnalysisStatus.PENDING:
            raise ConflictError("Report is not in open status")

        reference_number = report.reference_number
        verdict = await cls.get_verdict(report)

        values = {
            "analysis_attempts": Report.analysis_attempts + 1,
            "analysis_last_error": None,
            "updated_at": get_utc_now(),
        }
        if verdict.isValid:
            values["analysis_status"] = AnalysisStatus.APPROVED
            comment = _approval_comment(verdict)
        else:
            values.update(
                analysis_status=AnalysisStatus.CLOSED,
                status=ReportStatus.CLOSED,
                closed_at=get_utc_now(),
            )
            comment = _closure_comment(verdict)

        # Compare-and-swap: only one trigger can move the report out of pending
        result = await db.execute(
            update(Report)
            .where(
                Report.id == report_id,
                Report.status == ReportStatus.OPEN,
                Report.analysis_status == AnalysisStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConflictError("Report is not in open status")

        db.add(ReportComment(report_id=report_id, user_id=None, comment=comment))
        await commit_or_raise(db)
        db.expire(report)

        outcome = TriageOutcome(
            report_id=report_id,
            reference_number=reference_number,
            action=values["analysis_status"].value,
            reason=verdict.reason,
            confidence=verdict.confidence,
        )
        logger.info(
            "triage_completed",
            report_id=str(report_id),
            reference=outcome.reference_number,
            action=outcome.action,
            confidence=outcome.confidence,
        )
        return outcome

    @classmethod
    async def run_background_triage(cls, report_id: UUID) -> Optional[TriageOutcome]:
        """
        Background entry point, scheduled after a report is created.
        Never raises: failures are recorded on the report and it stays
        pending for a later retry.
        """
        logger.info("triage_started", report_id=str(report_id))

        async with db_session.AsyncSessionLocal() as db:
            try:
                # The provider call has its own deadline inside get_verdict;
                # this outer bound only catches a stuck database.
                async with asyncio.timeout(settings.TRIAGE_TIMEOUT_SECONDS + settings.DB_QUERY_TIMEOUT_SECONDS):
                    outcome = await cls.analyze(db, report_id)
            except ConflictError:
                logger.info("triage_skipped", report_id=str(report_id), reason="not_pending")
                return None
            except TimeoutError:
                logger.error("triage_db_timeout", report_id=str(report_id))
                await cls._record_failure(db, report_id, "Database timed out during triage")
                return None
            except (EduAlertError, SQLAlchemyError) as e:
                logger.error("triage_failed", report_id=str(report_id), error=str(e))
                await cls._record_failure(db, report_id, str(e))
                return None

        if outcome.action == AnalysisStatus.APPROVED.value:
            await NotificationService.send_report_notifications(report_id)
        return outcome

    @staticmethod
    async def _record_failure(db: AsyncSession, report_id: UUID, error_msg: str) -> None:
        """Bump the attempt counter without leaving the pending state."""
        try:
            await db.rollback()
            await db.execute(
                update(Report)
                .where(Report.id == report_id)
                .values(
                    analysis_attempts=Report.analysis_attempts + 1,
                    analysis_last_error=error_msg[:1000],
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("triage_failure_record_failed", report_id=str(report_id), error=str(e))
