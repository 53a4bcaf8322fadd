import unittest
from datetime import timedelta

from edualert.core import security


class TestPasswords(unittest.TestCase):

    def test_hash_round_trip(self):
        hashed = security.get_password_hash("Str0ng!Passw0rd")
        self.assertTrue(security.verify_password("Str0ng!Passw0rd", hashed))
        self.assertFalse(security.verify_password("wrong-password", hashed))

    def test_malformed_hash_does_not_raise(self):
        self.assertFalse(security.verify_password("anything", "not-a-bcrypt-hash"))

    def test_strict_policy_lists_every_missing_class(self):
        errors = security.validate_password_strength("short")
        self.assertEqual(len(errors), 4)  # length, uppercase, digit, special
        self.assertEqual(security.validate_password_strength("Str0ng!Passw0rd"), [])

    def test_profile_policy_only_checks_length(self):
        self.assertEqual(security.validate_password_length("alllowercase"), [])
        self.assertEqual(len(security.validate_password_length("abc")), 1)


class TestEmails(unittest.TestCase):

    def test_ministry_domain(self):
        self.assertTrue(security.is_ministry_email("jane.doe@moe.gov.gy"))
        self.assertTrue(security.is_ministry_email("  Jane.Doe@MOE.GOV.GY "))
        self.assertFalse(security.is_ministry_email("jane@gmail.com"))
        self.assertFalse(security.is_ministry_email("jane@moe.gov.gy.evil.com"))

    def test_normalize(self):
        self.assertEqual(security.normalize_email("  Jane.Doe@MOE.gov.gy "), "jane.doe@moe.gov.gy")


class TestSessionTokens(unittest.TestCase):

    def setUp(self):
        self.claims = security.SessionClaims(
            userId="0b7f0a52-9c44-4d0e-8f0c-3c1f2c6f9a10",
            email="officer@moe.gov.gy",
            role="officer",
            isApproved=True,
        )

    def test_round_trip(self):
        token = security.create_session_token(self.claims)
        self.assertEqual(security.decode_session_token(token), self.claims)

    def test_expired_token_is_none(self):
        token = security.create_session_token(self.claims, expires_delta=timedelta(seconds=-10))
        self.assertIsNone(security.decode_session_token(token))

    def test_tampered_token_is_none(self):
        token = security.create_session_token(self.claims)
        self.assertIsNone(security.decode_session_token(token[:-4] + "abcd"))

    def test_garbage_and_missing(self):
        self.assertIsNone(security.decode_session_token("not.a.token"))
        self.assertIsNone(security.decode_session_token(None))
        self.assertIsNone(security.decode_session_token(""))

    def test_numeric_code_shape(self):
        for _ in range(20):
            code = security.generate_numeric_code()
            self.assertEqual(len(code), 6)
            self.assertTrue(code.isdigit())


if __name__ == "__main__":
    unittest.main()
