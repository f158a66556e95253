"""Periodic sweeps of the registration engine.

All of them are idempotent and safe to overlap, so beat can run them as often as needed.
"""

import structlog
from celery import shared_task

from .service import check_in_service, promotion_service

logger = structlog.get_logger(__name__)


@shared_task(name="registrations.expire_promotions")
def expire_promotions() -> int:
    """Expire promotion offers past their deadline and offer each freed seat to the next in line."""
    expired = promotion_service.expire_overdue()
    logger.info("expire_promotions_finished", expired=expired)
    return expired


@shared_task(name="registrations.fill_free_seats")
def fill_free_seats() -> int:
    """Offer seats that are free while people are still waiting."""
    promoted = promotion_service.fill_free_seats()
    if promoted:
        logger.warning("fill_free_seats_promoted", promoted=promoted)
    return promoted


@shared_task(name="registrations.mark_no_shows")
def mark_no_shows() -> int:
    """Mark registrations of ended events that never checked in as NO_SHOW."""
    marked = check_in_service.mark_no_shows()
    logger.info("mark_no_shows_finished", marked=marked)
    return marked
