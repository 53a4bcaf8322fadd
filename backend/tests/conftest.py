import os

# Must be set before anything imports edualert.core.config
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-for-unit-tests-only"
os.environ["GEMINI_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["INTERNAL_API_KEY"] = ""
os.environ["DEFAULT_ADMIN_PASSWORD"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from edualert.core import security  # noqa: E402

# Cheap hashes keep the suite fast
security.BCRYPT_ROUNDS = 4
