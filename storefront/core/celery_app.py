from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging
from storefront.core.config import settings
from storefront.core.logging_config import configure_logging

celery_app = Celery(
    "storefront",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["storefront.tasks.notification_tasks", "storefront.tasks.order_tasks"]
)

# Celery Configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_track_started=True,

    task_time_limit=120,        # Hard limit (2 min)
    task_soft_time_limit=90,

    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=3600,  # 1 hour
)

celery_app.conf.task_routes = {
    "storefront.tasks.notification_tasks.*": {"queue": "notifications"},
}

celery_app.conf.beat_schedule = {
    "cancel-expired-orders-every-5-min": {
        "task": "storefront.tasks.order_tasks.cleanup_expired_orders",
        "schedule": crontab(minute="*/5"),
    },
}


@setup_logging.connect
def configure_worker_logging(**kwargs):
    configure_logging()
