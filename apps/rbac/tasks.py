"""
Celery tasks for RBAC maintenance.
"""
import logging
from celery import shared_task
from django.db import DatabaseError

from apps.rbac.services import OverrideService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def purge_expired_overrides(self):
    """
    Delete permission overrides whose expiry has passed.

    The resolver already ignores expired overrides; this only keeps the
    table small.

    Returns:
        dict: Result with status and number of deleted rows
    """
    try:
        deleted = OverrideService.purge_expired()
    except DatabaseError as exc:
        logger.error(f"Failed to purge expired overrides: {exc}", exc_info=True)
        raise self.retry(exc=exc)

    logger.info(f"Purged {deleted} expired permission override(s)")
    return {'status': 'success', 'deleted': deleted}
