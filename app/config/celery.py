"""
Celery configuration for the payments service.

Celery runs the work that must not happen on the request path:
- Submitting withdrawals to Transfeera (payments.tasks.submit_withdrawal)
- Periodic reconciliation of withdrawals without an outcome, scheduled by
  celery-beat from the database (django_celery_beat)

Redis is both the message broker and result backend. Tasks are
auto-discovered from every installed app's tasks.py.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
