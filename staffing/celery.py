"""
Celery application configuration for the staffing engine.

Tasks are auto-discovered from each Django app's tasks.py module.
The only periodic job is the event totals rebuild sweep (see settings/base.py).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "staffing.settings.local")

app = Celery("staffing")

# Read configuration from Django settings, namespaced under CELERY_
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()
