"""
Celery tasks for listing imports.

Both tasks publish pipeline progress as PROGRESS state meta
({message, current, total, percent}) so the HTTP layer can poll it.
"""

from typing import Any, Dict, Optional

from celery import current_app as celery_app

from app import create_app
from logging_config import get_logger
from services.listing_import_types import ImportResult

logger = get_logger(__name__)


def _progress_publisher(task):
    """Adapt task.update_state to the (message, current, total) callback shape"""
    def publish(message: str, current: int, total: int) -> None:
        percent = int(current * 100 / total) if total else 0
        task.update_state(
            state='PROGRESS',
            meta={
                'message': message,
                'current': current,
                'total': total,
                'percent': min(100, percent)
            }
        )
    return publish


@celery_app.task(bind=True)
def sync_rentcast_listings(self, city: Optional[str] = None, state: Optional[str] = None,
                           property_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Full-refresh sync of one market from RentCast.

    Args:
        city: Market city (config default when omitted)
        state: Market state (config default when omitted)
        property_type: RentCast property type filter

    Returns:
        ImportResult as a dict
    """
    publish = _progress_publisher(self)
    publish('Queued RentCast sync', 0, 100)

    try:
        app = create_app()
        with app.app_context():
            sync_service = app.services.get('rentcast_sync')
            result = sync_service.sync_market(
                city=city,
                state=state,
                property_type=property_type,
                progress_callback=publish
            )
    except Exception as e:
        logger.error("RentCast sync task failed", city=city, state=state, error=str(e))
        return ImportResult.fatal(f"RentCast sync failed: {e}").to_dict()

    logger.info("RentCast sync task finished", city=city, state=state,
                success=result.success, created=result.properties_created)
    return result.to_dict()


@celery_app.task(bind=True)
def import_listings_csv(self, content: str, filename: Optional[str] = None) -> Dict[str, Any]:
    """
    Import listing CSV text in the background.

    Args:
        content: CSV text (already decoded)
        filename: Original upload name, for logging

    Returns:
        ImportResult as a dict
    """
    publish = _progress_publisher(self)
    publish('Queued CSV import', 0, 100)

    try:
        app = create_app()
        with app.app_context():
            csv_service = app.services.get('listing_csv_import')
            result = csv_service.import_csv(content, filename=filename, progress_callback=publish)
    except Exception as e:
        logger.error("CSV import task failed", filename=filename, error=str(e))
        return ImportResult.fatal(f"CSV import failed: {e}").to_dict()

    return result.to_dict()


def get_task_progress(task_id: str) -> Dict[str, Any]:
    """
    Get the state of a listing import task.

    Returns:
        Dict with state, progress meta and (when finished) the ImportResult
    """
    result = celery_app.AsyncResult(task_id)

    if result.state == 'PENDING':
        return {
            'state': 'PENDING',
            'current': 0,
            'total': 100,
            'percent': 0,
            'message': 'Task is queued and waiting to start...'
        }
    if result.state == 'PROGRESS':
        info = result.info or {}
        return {
            'state': 'PROGRESS',
            'current': info.get('current', 0),
            'total': info.get('total', 100),
            'percent': info.get('percent', 0),
            'message': info.get('message', 'Processing...')
        }
    if result.state == 'SUCCESS':
        return {
            'state': 'SUCCESS',
            'current': 100,
            'total': 100,
            'percent': 100,
            'result': result.result,
            'message': 'Import finished'
        }
    return {
        'state': result.state,
        'current': 0,
        'total': 100,
        'percent': 0,
        'error': str(result.info) if result.info else 'Unknown error',
        'message': f'Import failed: {result.state}'
    }
