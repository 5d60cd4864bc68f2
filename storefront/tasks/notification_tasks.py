from celery import Task
from celery.utils.log import get_task_logger

from storefront.core.celery_app import celery_app
from storefront.services.notification_service import send_order_notifications

logger = get_task_logger(__name__)


class NotificationTask(Task):
    """
    Best-effort delivery: failures are reported in the result, never retried.
    """
    acks_late = True
    max_retries = 0


@celery_app.task(base=NotificationTask, bind=True)
def send_order_notification_messages(self, payload: dict):
    results = send_order_notifications(payload)
    if not all(results.values()):
        logger.warning(
            "order_notification_incomplete order_number=%s business=%s customer=%s",
            payload.get("order_number"),
            results["business"],
            results["customer"],
        )
    return results
