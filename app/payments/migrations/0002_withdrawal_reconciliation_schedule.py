"""
Add celery-beat schedule for reconciling stale withdrawals.

Creates the periodic task that polls the provider for withdrawals whose
outcome never arrived by webhook, every 10 minutes.
"""

from django.db import migrations

TASK_NAME = "Reconcile Stale Withdrawals"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for withdrawal reconciliation."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=10,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.tasks.reconcile_stale_withdrawals",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Polls Transfeera for PROCESSING withdrawals without an outcome "
                "and re-enqueues REQUESTED withdrawals that were never submitted."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
