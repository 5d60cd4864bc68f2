# storefront/tasks/order_tasks.py

from celery import shared_task
from storefront.db.session import SessionLocal
from storefront.services.order_service import expire_unpaid_orders


@shared_task(bind=True, max_retries=3)
def cleanup_expired_orders(self):
    """
    Cancel online orders still unpaid after the payment window.
    Runs periodically via Celery Beat.
    """
    db = SessionLocal()
    try:
        return expire_unpaid_orders(db)
    except Exception as exc:
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()
