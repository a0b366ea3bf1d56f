"""
Production settings for the staffing engine.

The request-handling layer that consumes the services lives elsewhere; this
module only hardens what the engine itself touches.
"""

from .base import *  # noqa: F401, F403

DEBUG = False

SECRET_KEY = env("SECRET_KEY")  # noqa: F405

# Role-diff and assignment transactions must not hang on a contended lock;
# a timeout surfaces as an ordinary failure result.
DATABASES["default"].setdefault("OPTIONS", {})  # noqa: F405
DATABASES["default"]["OPTIONS"]["options"] = "-c lock_timeout={ms} -c statement_timeout={stmt}".format(  # noqa: F405
    ms=env.int("DB_LOCK_TIMEOUT_MS", default=5000),  # noqa: F405
    stmt=env.int("DB_STATEMENT_TIMEOUT_MS", default=30000),  # noqa: F405
)
DATABASES["default"]["CONN_MAX_AGE"] = env.int("DB_CONN_MAX_AGE", default=60)  # noqa: F405
