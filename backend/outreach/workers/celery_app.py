"""
Celery Application Configuration
Scheduled key maintenance and worker-side campaign sends
"""

from celery import Celery
from celery.schedules import crontab
from kombu import Queue, Exchange

from outreach.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "outreach",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "outreach.workers.tasks.maintenance_tasks",
        "outreach.workers.tasks.campaign_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Result backend settings
    result_expires=86400,  # 24 hours

    # Task execution settings
    task_acks_late=True,  # Acknowledge after task completion
    task_reject_on_worker_lost=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Fair distribution
    worker_concurrency=4,

    # Queue configuration
    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("campaigns", Exchange("campaigns"), routing_key="campaign"),
        Queue("maintenance", Exchange("maintenance"), routing_key="maintenance"),
    ),

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    # Route tasks to appropriate queues
    task_routes={
        "outreach.workers.tasks.campaign_tasks.*": {"queue": "campaigns"},
        "outreach.workers.tasks.maintenance_tasks.*": {"queue": "maintenance"},
    },

    # Beat scheduler for periodic tasks
    beat_schedule={
        "reset-daily-usage": {
            "task": "outreach.workers.tasks.maintenance_tasks.reset_daily_usage",
            "schedule": crontab(hour=0, minute=5),  # Shortly after UTC midnight
        },
    },
)
