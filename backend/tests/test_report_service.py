import uuid
from unittest.mock import patch

from sqlalchemy import select

from edualert.core.exceptions import NotFoundError, PersistenceError, ValidationError
from edualert.db.session import AsyncSessionLocal
from edualert.models.report import ReportAssignment, ReportStatus, ReportPriority, ReporterType
from edualert.models.user import UserRole
from edualert.schemas.report import CreateReportRequest, ReportUpdateRequest
from edualert.services.access_scope import resolve_visible_report_ids
from edualert.services.report_service import ReportService, ReferenceNumberService
from tests.helpers import DatabaseTestCase, REGION2_PRIMARY, REGION4_PRIMARY


class TestReportCreation(DatabaseTestCase):

    def _request(self, **overrides):
        data = dict(
            region_id=REGION4_PRIMARY[1],
            school_id=REGION4_PRIMARY[0],
            grade="Grade 5",
            teacher_name="Jane Doe",
            subject="Mathematics",
            reporter_type=ReporterType.PARENT,
            description="Absent 3 days, no substitute arranged",
        )
        data.update(overrides)
        return CreateReportRequest(**data)

    async def test_create_then_track_round_trip(self):
        created = await ReportService.create_report(self.db, self._request())

        self.assertRegex(created.reference_number, r"^EDU\d{4}\d{4}$")
        self.assertEqual(created.status, ReportStatus.OPEN)
        self.assertEqual(created.priority, ReportPriority.MEDIUM)

        async with AsyncSessionLocal() as session:
            found = await ReportService.get_by_reference(session, created.reference_number.lower())
        self.assertEqual(found.id, created.id)
        self.assertEqual(found.teacher_name, "Jane Doe")
        self.assertEqual(found.school_id, REGION4_PRIMARY[0])
        self.assertEqual(found.description, "Absent 3 days, no substitute arranged")
        self.assertEqual(found.status, ReportStatus.OPEN)

    async def test_school_must_belong_to_region(self):
        with self.assertRaises(ValidationError) as ctx:
            await ReportService.create_report(self.db, self._request(region_id=2))
        self.assertEqual(ctx.exception.field, "regionId")

    async def test_unknown_school(self):
        with self.assertRaises(ValidationError):
            await ReportService.create_report(self.db, self._request(school_id=9999))

    async def test_unknown_reference(self):
        with self.assertRaises(NotFoundError):
            await ReportService.get_by_reference(self.db, "EDU20260000")
        with self.assertRaises(NotFoundError):
            await ReportService.get_by_reference(self.db, "not-a-reference")

    async def test_reference_retry_exhaustion(self):
        report = await self.make_report()
        with patch.object(ReferenceNumberService, "candidate", return_value=report.reference_number):
            with self.assertRaises(PersistenceError):
                await ReferenceNumberService.generate(self.db)

    async def test_reference_retries_past_collision(self):
        report = await self.make_report()
        candidates = iter([report.reference_number, "EDU20269999"])
        with patch.object(ReferenceNumberService, "candidate", side_effect=lambda: next(candidates)):
            self.assertEqual(await ReferenceNumberService.generate(self.db), "EDU20269999")


class TestReportUpdates(DatabaseTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.admin = await self.make_user("admin@moe.gov.gy", role=UserRole.ADMIN)
        self.officer_a = await self.make_user("a@moe.gov.gy")
        self.officer_b = await self.make_user("b@moe.gov.gy")
        self.officer_c = await self.make_user("c@moe.gov.gy")
        self.report = await self.make_report()

    async def _active_assignees(self):
        async with AsyncSessionLocal() as session:
            result = await session.execute(
                select(ReportAssignment.officer_id).where(
                    ReportAssignment.report_id == self.report.id,
                    ReportAssignment.removed_at.is_(None),
                )
            )
            return set(result.scalars().all())

    async def test_assignment_is_a_full_replace(self):
        await ReportService.update_report(
            self.db, self.report.id,
            ReportUpdateRequest(assigned_officers=[self.officer_a.id, self.officer_b.id]),
            self.admin.id,
        )
        self.assertEqual(await self._active_assignees(), {self.officer_a.id, self.officer_b.id})

        outcome = await ReportService.update_report(
            self.db, self.report.id,
            ReportUpdateRequest(assigned_officers=[self.officer_b.id, self.officer_c.id]),
            self.admin.id,
        )
        self.assertEqual(await self._active_assignees(), {self.officer_b.id, self.officer_c.id})
        self.assertEqual(outcome.assigned_officer_ids, [self.officer_b.id, self.officer_c.id])

    async def test_empty_list_clears_assignments(self):
        await ReportService.update_report(
            self.db, self.report.id, ReportUpdateRequest(assigned_officers=[self.officer_a.id]), self.admin.id
        )
        outcome = await ReportService.update_report(
            self.db, self.report.id, ReportUpdateRequest(assigned_officers=[]), self.admin.id
        )
        self.assertEqual(await self._active_assignees(), set())
        self.assertEqual(outcome.assigned_officer_ids, [])

    async def test_omitted_fields_are_untouched(self):
        await ReportService.update_report(
            self.db, self.report.id, ReportUpdateRequest(assigned_officers=[self.officer_a.id]), self.admin.id
        )
        outcome = await ReportService.update_report(
            self.db, self.report.id, ReportUpdateRequest(priority=ReportPriority.HIGH), self.admin.id
        )
        self.assertEqual(outcome.report.priority, ReportPriority.HIGH)
        self.assertEqual(outcome.report.status, ReportStatus.OPEN)
        self.assertEqual(await self._active_assignees(), {self.officer_a.id})

    async def test_closed_at_follows_status(self):
        outcome = await ReportService.update_report(
            self.db, self.report.id, ReportUpdateRequest(status=ReportStatus.CLOSED), self.admin.id
        )
        self.assertIsNotNone(outcome.report.closed_at)

        outcome = await ReportService.update_report(
            self.db, self.report.id, ReportUpdateRequest(status=ReportStatus.IN_PROGRESS), self.admin.id
        )
        self.assertIsNone(outcome.report.closed_at)

    async def test_unknown_officer_rejects_whole_update(self):
        with self.assertRaises(ValidationError) as ctx:
            await ReportService.update_report(
                self.db, self.report.id,
                ReportUpdateRequest(priority=ReportPriority.LOW, assigned_officers=[uuid.uuid4()]),
                self.admin.id,
            )
        self.assertEqual(ctx.exception.field, "assignedOfficers")
        async with AsyncSessionLocal() as session:
            stored = await ReportService.get_report(session, self.report.id)
        self.assertEqual(stored.priority, ReportPriority.MEDIUM)

    async def test_unapproved_officer_cannot_be_assigned(self):
        pending = await self.make_user("pending@moe.gov.gy", approved=False)
        with self.assertRaises(ValidationError):
            await ReportService.update_report(
                self.db, self.report.id, ReportUpdateRequest(assigned_officers=[pending.id]), self.admin.id
            )

    async def test_officer_cannot_touch_reports_outside_scope(self):
        visible = await resolve_visible_report_ids(self.db, self.officer_a.id, self.officer_a.role)
        with self.assertRaises(NotFoundError):
            await ReportService.update_report(
                self.db, self.report.id, ReportUpdateRequest(priority=ReportPriority.HIGH),
                self.officer_a.id, visible,
            )
        with self.assertRaises(NotFoundError):
            await ReportService.add_comment(self.db, self.report.id, self.officer_a.id, "Following up", visible)


class TestComments(DatabaseTestCase):

    async def test_comment_is_trimmed_and_attributed(self):
        officer = await self.make_user("officer@moe.gov.gy", role=UserRole.SENIOR_OFFICER, full_name="Ann Smith")
        report = await self.make_report()

        comment = await ReportService.add_comment(self.db, report.id, officer.id, "  Called the school.  ")

        self.assertEqual(comment.comment, "Called the school.")
        self.assertEqual(comment.author.full_name, "Ann Smith")
        comments = await ReportService.list_comments(self.db, report.id)
        self.assertEqual([c.id for c in comments], [comment.id])

    async def test_blank_comment_rejected(self):
        officer = await self.make_user("officer@moe.gov.gy", role=UserRole.ADMIN)
        report = await self.make_report()
        with self.assertRaises(ValidationError):
            await ReportService.add_comment(self.db, report.id, officer.id, "   ")


class TestListingAndDashboard(DatabaseTestCase):

    async def test_list_filters_and_paginates(self):
        for _ in range(3):
            await self.make_report()
        await self.make_report(status=ReportStatus.CLOSED)

        reports, total = await ReportService.list_reports(self.db, None, status=ReportStatus.OPEN, limit=2)
        self.assertEqual(total, 3)
        self.assertEqual(len(reports), 2)

        reports, total = await ReportService.list_reports(self.db, None, limit=20, offset=3)
        self.assertEqual(total, 4)
        self.assertEqual(len(reports), 1)

    async def test_empty_scope_short_circuits(self):
        await self.make_report()
        reports, total = await ReportService.list_reports(self.db, set())
        self.assertEqual((reports, total), ([], 0))

        stats, recent = await ReportService.dashboard(self.db, set())
        self.assertEqual(stats.total_reports, 0)
        self.assertEqual(recent, [])

    async def test_dashboard_counts_and_recent(self):
        await self.make_report(school_id=REGION2_PRIMARY[0])
        await self.make_report(status=ReportStatus.IN_PROGRESS)
        await self.make_report(status=ReportStatus.CLOSED, description="x" * 150)

        stats, recent = await ReportService.dashboard(self.db, None)

        self.assertEqual(stats.total_reports, 3)
        self.assertEqual(stats.open_reports, 1)
        self.assertEqual(stats.in_progress_reports, 1)
        self.assertEqual(stats.closed_reports, 1)
        self.assertEqual(len(recent), 3)
        self.assertEqual(recent[0].time, "Just now")
        self.assertTrue(all(len(r.description) <= 103 for r in recent))
        self.assertIn("In Progress", {r.status for r in recent})
