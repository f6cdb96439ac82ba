"""Development settings."""
from .base import *  # noqa: F401,F403

DEBUG = True

# Post-acceptance tasks run in-process unless a worker is started.
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=True)  # noqa: F405

# Email: confirmations are printed, signed PDFs included
EMAIL_BACKEND = env(  # noqa: F405
    "EMAIL_BACKEND",
    default="django.core.mail.backends.console.EmailBackend",
)
EMAIL_HOST = env("EMAIL_HOST", default="localhost")  # noqa: F405
EMAIL_PORT = env.int("EMAIL_PORT", default=25)  # noqa: F405

# Links printed by seed_demo_data point at the local proposal page.
FRONTEND_URL = env("FRONTEND_URL", default="http://localhost:5173")  # noqa: F405
BACKEND_URL = env("BACKEND_URL", default="http://localhost:8000")  # noqa: F405

CORS_ALLOW_ALL_ORIGINS = True

LOGGING["root"]["level"] = "DEBUG"  # noqa: F405
LOGGING["loggers"]["pipeline"]["level"] = "DEBUG"  # noqa: F405
