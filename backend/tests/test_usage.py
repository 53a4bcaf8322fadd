import asyncio
import unittest
from unittest.mock import patch, AsyncMock

from edualert.core.config import settings
from edualert.core.exceptions import RateLimitError
from edualert.models.ai_usage import AiUsage
from edualert.models.user import UserRole
from edualert.services.ai_service import GeminiService
from edualert.services.usage_service import UsageService, usage_today
from tests.helpers import APITestCase, DatabaseTestCase


class TestUsageService(DatabaseTestCase):

    async def _set_usage(self, user, count):
        self.db.add(AiUsage(user_id=user.id, usage_date=usage_today(), questions_asked=count))
        await self.db.commit()

    async def test_record_question_creates_then_increments(self):
        user = await self.make_user("officer@moe.gov.gy")

        first = await UsageService.record_question(self.db, user.id)
        second = await UsageService.record_question(self.db, user.id)

        self.assertEqual(first.questions_used, 1)
        self.assertEqual(second.questions_used, 2)
        self.assertEqual(second.daily_limit, 10)

    async def test_quota_blocks_at_limit(self):
        user = await self.make_user("officer@moe.gov.gy")
        await self._set_usage(user, settings.AI_DAILY_QUESTION_LIMIT - 1)

        self.assertEqual(await UsageService.check_quota(self.db, user.id), 9)
        await UsageService.record_question(self.db, user.id)
        with self.assertRaises(RateLimitError):
            await UsageService.check_quota(self.db, user.id)

    async def test_lookup_timeout_falls_back_to_zero(self):
        user = await self.make_user("officer@moe.gov.gy")
        await self._set_usage(user, 4)

        async def stalled(*args, **kwargs):
            await asyncio.sleep(1)
            return 4

        with patch.object(UsageService, "questions_used", side_effect=stalled), \
                patch.object(settings, "DB_QUERY_TIMEOUT_SECONDS", 0.1):
            usage = await UsageService.get_usage(self.db, user.id)

        self.assertEqual(usage.questions_used, 0)
        self.assertEqual(usage.daily_limit, 10)

    async def test_reset_clears_today_only_for_that_user(self):
        user = await self.make_user("officer@moe.gov.gy")
        other = await self.make_user("other@moe.gov.gy")
        await self._set_usage(user, 3)
        await self._set_usage(other, 5)

        await UsageService.reset(self.db, user.id)

        self.assertEqual(await UsageService.questions_used(self.db, user.id), 0)
        self.assertEqual(await UsageService.questions_used(self.db, other.id), 5)


class TestUsageAPI(APITestCase):

    async def _set_usage(self, user, count):
        self.db.add(AiUsage(user_id=user.id, usage_date=usage_today(), questions_asked=count))
        await self.db.commit()

    @patch.object(GeminiService, "chat", new_callable=AsyncMock)
    async def test_chat_reports_usage_and_enforces_limit(self, mock_chat):
        mock_chat.return_value = "Hello!"
        user = await self.make_user("officer@moe.gov.gy")
        headers = self.auth_headers(user)
        await self._set_usage(user, settings.AI_DAILY_QUESTION_LIMIT - 1)

        last = await self.client.post("/api/ai/chat", headers=headers, json={"message": "Hi"})
        self.assertEqual(last.status_code, 200)
        self.assertEqual(last.json()["usage"]["questionsUsed"], 10)
        self.assertEqual(last.json()["usage"]["dailyLimit"], 10)

        blocked = await self.client.post("/api/ai/chat", headers=headers, json={"message": "Hi again"})
        self.assertEqual(blocked.status_code, 429)
        self.assertIn("Daily limit of 10 questions", blocked.json()["detail"])
        self.assertEqual(mock_chat.await_count, 1)

    async def test_failed_answer_is_not_counted(self):
        user = await self.make_user("officer@moe.gov.gy")
        headers = self.auth_headers(user)

        response = await self.client.post("/api/ai/chat", headers=headers, json={"message": "Hello"})
        self.assertEqual(response.status_code, 503)

        usage = await self.client.get("/api/ai/usage", headers=headers)
        self.assertEqual(usage.status_code, 200)
        self.assertEqual(usage.json()["questionsUsed"], 0)
        self.assertIn("resetsAt", usage.json())

    async def test_admin_usage_listing_and_reset(self):
        admin = await self.make_user("admin@moe.gov.gy", role=UserRole.ADMIN)
        senior = await self.make_user("senior@moe.gov.gy", role=UserRole.SENIOR_OFFICER)
        officer = await self.make_user("officer@moe.gov.gy")
        await self._set_usage(officer, 7)
        await self._set_usage(senior, 2)

        listing = await self.client.get("/api/ai/admin/usage", headers=self.auth_headers(senior))
        self.assertEqual(listing.status_code, 200)
        rows = listing.json()["usage"]
        self.assertEqual([r["email"] for r in rows], ["officer@moe.gov.gy", "senior@moe.gov.gy"])
        self.assertEqual(rows[0]["questionsAsked"], 7)

        denied = await self.client.get("/api/ai/admin/usage", headers=self.auth_headers(officer))
        self.assertEqual(denied.status_code, 403)

        not_admin = await self.client.delete(
            "/api/ai/admin/usage", params={"userId": str(officer.id)}, headers=self.auth_headers(senior)
        )
        self.assertEqual(not_admin.status_code, 403)

        reset = await self.client.delete(
            "/api/ai/admin/usage", params={"userId": str(officer.id)}, headers=self.auth_headers(admin)
        )
        self.assertEqual(reset.status_code, 200)
        usage = await self.client.get("/api/ai/usage", headers=self.auth_headers(officer))
        self.assertEqual(usage.json()["questionsUsed"], 0)


if __name__ == "__main__":
    unittest.main()
