"""
Add celery-beat schedule for the escrow timeout sweep.

This migration creates the periodic task schedule for the
sweep_escrow_timeouts task, which runs every 15 minutes and
auto-releases held escrows whose timeout date has passed.
"""

from django.db import migrations

TASK_NAME = "Sweep Escrow Timeouts"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the escrow timeout sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Create interval schedule: every 15 minutes
    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "custody.workers.timeout_sweeper.sweep_escrow_timeouts",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Auto-releases held escrows past their timeout date to the "
                "seller, driver and platform."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("custody", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
