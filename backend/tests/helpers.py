import unittest
from typing import Optional

import httpx

from edualert.core import security
from edualert.db.base import Base
from edualert.db.init_db import seed_reference_data
from edualert.db.session import engine, AsyncSessionLocal
from edualert.models.report import Report, ReportStatus, ReportPriority, ReporterType
from edualert.models.subscription import OfficerSubscription
from edualert.models.user import User, UserRole
from edualert.services.report_service import ReferenceNumberService

DEFAULT_PASSWORD = "Str0ng!Passw0rd"

# Seeded schools used across tests: (school_id, region_id)
REGION2_PRIMARY = (17, 2)
REGION2_SECONDARY = (18, 2)
REGION4_PRIMARY = (4, 4)

PRIMARY = 2
SECONDARY = 3


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh in-memory schema with reference data for every test."""

    async def asyncSetUp(self):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with AsyncSessionLocal() as session:
            await seed_reference_data(session)
        self.db = AsyncSessionLocal()

    async def asyncTearDown(self):
        await self.db.close()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    async def make_user(
        self,
        email: str,
        role: UserRole = UserRole.OFFICER,
        approved: bool = True,
        verified: bool = True,
        password: str = DEFAULT_PASSWORD,
        full_name: Optional[str] = None,
    ) -> User:
        user = User(
            email=email,
            password_hash=security.get_password_hash(password),
            full_name=full_name or email.split("@")[0].replace(".", " ").title(),
            position="Education Officer",
            role=role,
            is_approved=approved,
            is_verified=verified,
        )
        self.db.add(user)
        await self.db.commit()
        return user

    async def make_report(
        self,
        school_id: int = REGION4_PRIMARY[0],
        teacher_name: str = "Jane Doe",
        description: str = "Absent 3 days, no substitute arranged",
        status: ReportStatus = ReportStatus.OPEN,
    ) -> Report:
        report = Report(
            reference_number=await ReferenceNumberService.generate(self.db),
            school_id=school_id,
            grade="Grade 5",
            teacher_name=teacher_name,
            subject="Mathematics",
            reporter_type=ReporterType.PARENT,
            description=description,
            status=status,
            priority=ReportPriority.MEDIUM,
        )
        self.db.add(report)
        await self.db.commit()
        return report

    async def subscribe(self, user: User, region_id: int, school_level_id: int) -> OfficerSubscription:
        subscription = OfficerSubscription(officer_id=user.id, region_id=region_id, school_level_id=school_level_id)
        self.db.add(subscription)
        await self.db.commit()
        return subscription


class APITestCase(DatabaseTestCase):
    """DatabaseTestCase plus an in-process HTTP client for the app."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        from edualert.main import app
        self.app = app
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    async def asyncTearDown(self):
        await self.client.aclose()
        await super().asyncTearDown()

    def auth_headers(self, user: User) -> dict:
        claims = security.SessionClaims(
            userId=str(user.id),
            email=user.email,
            role=user.role.value,
            isApproved=user.is_approved,
        )
        return {"Authorization": f"Bearer {security.create_session_token(claims)}"}
