"""Celery tasks for recording reconciliation."""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from livecast.core.celery_app import celery_app
from livecast.core.database import async_session_maker
from livecast.core.logging import log_error, log_info
from livecast.modules.stream.reconciliation import get_reconciliation_service
from livecast.modules.stream.service import StreamService

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
)
def reconcile_recordings(self) -> dict:
    """Periodic sweep: the same bulk pass as the recordings listing.

    Returns:
        dict: Summary of the pass
    """
    try:
        return asyncio.run(_reconcile_recordings_async())
    except SQLAlchemyError as e:
        log_error(
            logger,
            "Scheduled recording reconciliation failed",
            exception=e,
            attempt=self.request.retries,
        )
        raise


async def _reconcile_recordings_async() -> dict:
    async with async_session_maker() as session:
        service = StreamService(session, reconciliation=get_reconciliation_service())
        result = await service.reconcile_recordings()

    summary = result.to_dict()
    log_info(logger, "Scheduled recording reconciliation done", **summary)
    return summary
