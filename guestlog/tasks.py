"""
Celery Tasks
Background tasks that keep the Excel visit log in step with the ledger.
"""

import logging
import time

from kombu.exceptions import OperationalError

from guestlog.celery_worker import celery_app
from guestlog.core.config import get_settings
from guestlog.services.excel_manager import ExcelManager
from guestlog.services.ledger import CustomerRecord

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_customer_visit(self, visit_data: dict) -> dict:
    """
    Append one visit to the Excel log.

    A lock timeout or write failure propagates so Celery retries the visit.

    Args:
        visit_data: Customer record JSON plus ``isNew``

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    customer_id = visit_data.get('id', 'unknown')

    logger.info(f"Task {task_id}: exporting visit of Customer #{customer_id}")
    start_time = time.time()

    result = ExcelManager().export_visit(visit_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    logger.info(f"Task {task_id}: Customer #{customer_id} done in {elapsed}s")
    return result


def queue_visit_export(record: CustomerRecord, is_new: bool) -> bool:
    """
    Queue a visit for the Excel log.

    The visit is already committed when this runs, so a broker outage is
    logged rather than turned into a failed request.

    Returns:
        True if the task was queued
    """
    if not get_settings().excel_export_enabled:
        return False

    payload = {**record.to_dict(), 'isNew': is_new}
    try:
        export_customer_visit.delay(payload)
    except OperationalError as e:
        logger.error(f"Could not queue visit export for Customer #{record.id}: {e}")
        return False
    return True
