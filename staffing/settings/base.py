"""
Base Django settings for the catering staffing engine.

All environment-specific settings (local.py, production.py, test.py) extend this module.
Values that MUST be overridden per environment are marked with # REQUIRED OVERRIDE.
"""

from pathlib import Path

import environ

# ---------------------------------------------------------------------------
# Path configuration
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# django-environ reads from .env file or OS environment
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
)

environ.Env.read_env(BASE_DIR / ".env")

# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------
SECRET_KEY = env("SECRET_KEY", default="insecure-local-key")  # REQUIRED OVERRIDE
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# ---------------------------------------------------------------------------
# Application definition
# ---------------------------------------------------------------------------
DJANGO_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
]

THIRD_PARTY_APPS = [
    "django_celery_beat",
]

LOCAL_APPS = [
    "apps.accounts",
    "apps.workforce",
    "apps.events",
    "apps.scheduling",
    "apps.audit",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
# PostgreSQL is required in production: worker-scoped advisory locks and
# SERIALIZABLE role-diff transactions depend on it.
DATABASES = {
    "default": env.db("DATABASE_URL", default="postgres://localhost:5432/staffing"),
}

# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
AUTH_USER_MODEL = "accounts.User"

# ---------------------------------------------------------------------------
# Internationalization & Timezone
# ---------------------------------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"  # Every stored datetime is UTC (the *_utc columns)
USE_I18N = True
USE_TZ = True  # CRITICAL: all datetimes are timezone-aware

# ---------------------------------------------------------------------------
# Celery
# ---------------------------------------------------------------------------
CELERY_BROKER_URL = env("REDIS_URL", default="redis://localhost:6379/0")
CELERY_RESULT_BACKEND = env("REDIS_URL", default="redis://localhost:6379/0")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "UTC"
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

CELERY_BEAT_SCHEDULE = {
    "rebuild-event-totals": {
        "task": "events.rebuild_event_totals",
        "schedule": env.int("TOTALS_REBUILD_INTERVAL_SECONDS", default=3600),
    },
}

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = env("LOG_LEVEL", default="INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(levelname)s %(asctime)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# ---------------------------------------------------------------------------
# Staffing business rules (override in settings if needed)
# ---------------------------------------------------------------------------
STAFFING = {
    # Hourly rate used when neither the assignment nor the shift carries one
    "DEFAULT_PAY_RATE": env("DEFAULT_PAY_RATE", default="0"),
    # "iterate" sums assignments row by row; "aggregate" groups in the database.
    # Both must produce the same totals.
    "TOTALS_STRATEGY": env("TOTALS_STRATEGY", default="iterate"),
    # First key of the two-key pg_advisory_xact_lock used for worker locks
    "ADVISORY_LOCK_NAMESPACE": env.int("ADVISORY_LOCK_NAMESPACE", default=4711),
    # Completed events younger than this are still swept by rebuild_event_totals
    "TOTALS_REBUILD_LOOKBACK_DAYS": env.int("TOTALS_REBUILD_LOOKBACK_DAYS", default=14),
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
