"""Test settings - uses SQLite for fast local testing."""
import os

os.environ.setdefault("DEBUG", "True")
os.environ.setdefault(
    "SECRET_KEY",
    "test-only-secret-key-3f9a1c7e5b2d8046a1e9c3b7d5f2a8e4c6b0d9f1a3e5c7b9",
)

from .base import *  # noqa: E402,F401,F403

DEBUG = True

# Use SQLite for tests (no PostgreSQL dependency)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}
DATABASES["default"]["ATOMIC_REQUESTS"] = False

# Faster password hashing in tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable Redis cache in tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Disable Celery in tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"

# Disable API throttling in tests for deterministic runs
REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []  # noqa: F405
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {  # noqa: F405
    "proposal_sign": "10000/min",
    "proposal_engage": "10000/min",
}

# Email
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Field service calls are always faked in tests
HCP_API_BASE_URL = "https://hcp.test/api"
HCP_BEARER_TOKEN = "test-token"

BACKEND_URL = "http://testserver"

# Disable logging noise during tests; keep propagation so caplog sees records
LOGGING["root"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["pipeline"]["handlers"] = ["console"]  # noqa: F405
LOGGING["loggers"]["pipeline"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["pipeline"]["propagate"] = True  # noqa: F405
