from unittest.mock import patch

from sqlalchemy import select

from edualert.core import security
from edualert.core.config import settings
from edualert.db.session import AsyncSessionLocal
from edualert.models.user import OtpCode, OtpPurpose, User
from tests.helpers import APITestCase, DEFAULT_PASSWORD


class TestLogin(APITestCase):

    async def test_login_sets_session_cookie(self):
        await self.make_user("jane.doe@moe.gov.gy", full_name="Jane Doe")

        response = await self.client.post(
            "/api/auth/login", json={"email": "  Jane.Doe@MOE.gov.gy ", "password": DEFAULT_PASSWORD}
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["user"]["email"], "jane.doe@moe.gov.gy")
        self.assertEqual(body["user"]["fullName"], "Jane Doe")
        set_cookie = response.headers.get("set-cookie", "")
        self.assertIn(f"{settings.SESSION_COOKIE_NAME}=", set_cookie)
        self.assertIn("httponly", set_cookie.lower())
        self.assertIn("samesite=lax", set_cookie.lower())

        token = response.cookies[settings.SESSION_COOKIE_NAME]
        validated = await self.client.get(
            "/api/auth/validate", headers={"Cookie": f"{settings.SESSION_COOKIE_NAME}={token}"}
        )
        self.assertEqual(validated.status_code, 200)
        self.assertEqual(validated.json()["user"]["role"], "officer")

    async def test_bad_credentials_are_indistinguishable(self):
        await self.make_user("jane.doe@moe.gov.gy")
        attempts = [
            {"email": "jane.doe@moe.gov.gy", "password": "wrong-password"},
            {"email": "nobody@moe.gov.gy", "password": DEFAULT_PASSWORD},
            {"email": "jane.doe@gmail.com", "password": DEFAULT_PASSWORD},
        ]
        for payload in attempts:
            response = await self.client.post("/api/auth/login", json=payload)
            self.assertEqual(response.status_code, 401, payload)
            self.assertEqual(response.json()["detail"], "Invalid credentials")

    async def test_unknown_account_still_checks_a_hash(self):
        with patch("edualert.services.auth_service.security.verify_password", return_value=False) as mock_verify:
            response = await self.client.post(
                "/api/auth/login", json={"email": "nobody@moe.gov.gy", "password": DEFAULT_PASSWORD}
            )

        self.assertEqual(response.status_code, 401)
        mock_verify.assert_called_once_with(DEFAULT_PASSWORD, security.dummy_password_hash())

    async def test_unapproved_account_is_refused_without_cookie(self):
        await self.make_user("pending@moe.gov.gy", approved=False)

        response = await self.client.post(
            "/api/auth/login", json={"email": "pending@moe.gov.gy", "password": DEFAULT_PASSWORD}
        )

        self.assertEqual(response.status_code, 403)
        self.assertIn("pending approval", response.json()["detail"])
        self.assertNotIn(settings.SESSION_COOKIE_NAME, response.headers.get("set-cookie", ""))

    async def test_unverified_account_is_refused(self):
        await self.make_user("new@moe.gov.gy", verified=False, approved=False)
        response = await self.client.post(
            "/api/auth/login", json={"email": "new@moe.gov.gy", "password": DEFAULT_PASSWORD}
        )
        self.assertEqual(response.status_code, 403)
        self.assertIn("verify", response.json()["detail"])

    async def test_validate_requires_token(self):
        response = await self.client.get("/api/auth/validate")
        self.assertEqual(response.status_code, 401)

        response = await self.client.get("/api/auth/validate", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(response.status_code, 401)

    async def test_missing_field_is_a_400_naming_it(self):
        response = await self.client.post("/api/auth/login", json={"password": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "email")
        self.assertEqual(response.json()["detail"], "email is required")

    async def test_logout_clears_cookie(self):
        response = await self.client.post("/api/auth/logout")
        self.assertEqual(response.status_code, 200)
        self.assertIn(f"{settings.SESSION_COOKIE_NAME}=", response.headers.get("set-cookie", ""))


class TestRegistration(APITestCase):

    async def test_register_verify_then_wait_for_approval(self):
        response = await self.client.post("/api/auth/register", json={
            "email": "new.officer@moe.gov.gy",
            "password": "Str0ng!Passw0rd",
            "fullName": "New Officer",
            "position": "District Officer",
        })
        self.assertEqual(response.status_code, 201)
        code = response.json()["otpCode"]
        self.assertEqual(len(code), 6)

        bad = await self.client.post("/api/auth/verify-otp", json={"email": "new.officer@moe.gov.gy", "code": "000000" if code != "000000" else "111111"})
        self.assertEqual(bad.status_code, 400)

        verified = await self.client.post("/api/auth/verify-otp", json={"email": "new.officer@moe.gov.gy", "code": code})
        self.assertEqual(verified.status_code, 200)
        self.assertTrue(verified.json()["isVerified"])

        login = await self.client.post(
            "/api/auth/login", json={"email": "new.officer@moe.gov.gy", "password": "Str0ng!Passw0rd"}
        )
        self.assertEqual(login.status_code, 403)
        self.assertIn("pending approval", login.json()["detail"])

    async def test_register_enforces_strict_policy(self):
        response = await self.client.post("/api/auth/register", json={
            "email": "weak@moe.gov.gy",
            "password": "lowercaseonly",
            "fullName": "Weak Password",
            "position": "Officer",
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "password")

    async def test_register_rejects_other_domains_and_duplicates(self):
        await self.make_user("taken@moe.gov.gy")
        for email in ("someone@gmail.com", "taken@moe.gov.gy"):
            response = await self.client.post("/api/auth/register", json={
                "email": email,
                "password": "Str0ng!Passw0rd",
                "fullName": "Some One",
                "position": "Officer",
            })
            self.assertEqual(response.status_code, 400, email)
            self.assertEqual(response.json()["field"], "email")


class TestPasswordReset(APITestCase):

    async def _latest_reset_code(self, email):
        async with AsyncSessionLocal() as session:
            result = await session.execute(
                select(OtpCode).where(OtpCode.email == email, OtpCode.purpose == OtpPurpose.PASSWORD_RESET)
            )
            return result.scalars().one().code

    async def test_uniform_message(self):
        await self.make_user("jane.doe@moe.gov.gy")
        known = await self.client.post("/api/auth/forgot-password", json={"email": "jane.doe@moe.gov.gy"})
        unknown = await self.client.post("/api/auth/forgot-password", json={"email": "ghost@moe.gov.gy"})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())

    async def test_full_reset_flow(self):
        await self.make_user("jane.doe@moe.gov.gy")
        await self.client.post("/api/auth/forgot-password", json={"email": "jane.doe@moe.gov.gy"})
        code = await self._latest_reset_code("jane.doe@moe.gov.gy")

        check = await self.client.post("/api/auth/validate-reset-code", json={"code": code})
        self.assertEqual(check.status_code, 200)
        self.assertEqual(check.json()["email"], "jane.doe@moe.gov.gy")

        weak = await self.client.post("/api/auth/reset-password", json={"code": code, "password": "short"})
        self.assertEqual(weak.status_code, 400)

        reset = await self.client.post("/api/auth/reset-password", json={"code": code, "password": "N3w!Password99"})
        self.assertEqual(reset.status_code, 200)

        reused = await self.client.post("/api/auth/validate-reset-code", json={"code": code})
        self.assertEqual(reused.status_code, 400)

        login = await self.client.post(
            "/api/auth/login", json={"email": "jane.doe@moe.gov.gy", "password": "N3w!Password99"}
        )
        self.assertEqual(login.status_code, 200)

    async def test_reset_code_must_be_six_digits(self):
        response = await self.client.post("/api/auth/validate-reset-code", json={"code": "12ab"})
        self.assertEqual(response.status_code, 400)


class TestProfile(APITestCase):

    async def test_profile_password_only_checks_length(self):
        user = await self.make_user("jane.doe@moe.gov.gy")
        headers = self.auth_headers(user)

        response = await self.client.patch("/api/auth/profile", headers=headers, json={
            "fullName": "Jane Q. Doe",
            "position": "Senior Teacher",
            "currentPassword": DEFAULT_PASSWORD,
            "newPassword": "simple12",
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["profile"]["fullName"], "Jane Q. Doe")
        login = await self.client.post("/api/auth/login", json={"email": "jane.doe@moe.gov.gy", "password": "simple12"})
        self.assertEqual(login.status_code, 200)

    async def test_profile_password_change_needs_current_password(self):
        user = await self.make_user("jane.doe@moe.gov.gy")
        response = await self.client.patch("/api/auth/profile", headers=self.auth_headers(user), json={
            "fullName": "Jane Doe",
            "position": "Teacher",
            "currentPassword": "not-it",
            "newPassword": "simple12",
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "currentPassword")

    async def test_read_profile(self):
        user = await self.make_user("jane.doe@moe.gov.gy")
        response = await self.client.get("/api/auth/profile", headers=self.auth_headers(user))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["profile"]["email"], "jane.doe@moe.gov.gy")
        self.assertTrue(response.json()["profile"]["isVerified"])
