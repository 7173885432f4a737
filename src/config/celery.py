"""
Celery application for the COD fulfilment backend.

DJANGO_SETTINGS_MODULE is set before the app is created so Celery reads
the Django settings (``CELERY_`` prefix), including the beat schedule for
the outbox dispatcher and the daily points expiry.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("fulfilment")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up tasks.py from every installed app (core, loyalty)
app.autodiscover_tasks()
