from datetime import timedelta

from celery import Celery

from solargen.config import settings

celery_app = Celery(
    "solargen",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["solargen.workers.tasks"],
)

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Reliability
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,  # Backfills are long-running; one at a time per worker
    # Result expiry: 24 hours
    result_expires=86400,
)

# Drip timer: one reading per tick, run by `celery beat`
if settings.drip_enabled:
    celery_app.conf.beat_schedule = {
        "drip-reading": {
            "task": "solargen.drip_reading",
            "schedule": timedelta(hours=settings.drip_interval_hours),
        },
    }
