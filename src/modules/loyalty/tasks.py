"""Celery tasks for the loyalty ledger."""

import structlog
from celery import shared_task

from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.loyalty.services import LoyaltyService

logger = structlog.get_logger(__name__)


@shared_task(name="loyalty.expire_points")
def expire_points() -> int:
    """Expire points past their expiry date (scheduled daily by Celery beat)."""
    service = LoyaltyService(customer_repository=CustomerDjangoRepository())
    count = service.expire_old_points()
    logger.info("loyalty.expire_points.completed", count=count)
    return count
