"""
Listing import routes - CSV template/upload, RentCast sync, task progress
"""

from flask import Blueprint, Response, current_app, jsonify, request

from logging_config import get_logger
from services.listing_csv_import_service import TEMPLATE_FILENAME, generate_csv_template
from tasks.listing_import_tasks import get_task_progress, import_listings_csv, sync_rentcast_listings

logger = get_logger(__name__)

listing_import_bp = Blueprint('listing_import', __name__)


def _wants_async() -> bool:
    return request.args.get('async', '').lower() in ('1', 'true', 'yes')


@listing_import_bp.route('/template', methods=['GET'])
def download_template():
    """CSV template with every supported column and three example rows"""
    return Response(
        generate_csv_template(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={TEMPLATE_FILENAME}'}
    )


@listing_import_bp.route('/csv', methods=['POST'])
def import_csv():
    """Import an uploaded CSV. ?async=1 queues it as a background task."""
    file = request.files.get('file')
    if file is None or not file.filename:
        return jsonify({'success': False, 'errors': [{'error': 'Please select a CSV file'}]}), 400

    if _wants_async():
        if not file.filename.lower().endswith('.csv'):
            return jsonify({'success': False, 'errors': [{'error': 'Please upload a CSV file'}]}), 400
        content = file.read().decode('utf-8-sig', errors='replace')
        task = import_listings_csv.delay(content, filename=file.filename)
        logger.info("Queued CSV listing import", task_id=task.id, filename=file.filename)
        return jsonify({'task_id': task.id, 'status': 'queued'}), 202

    csv_service = current_app.services.get('listing_csv_import')
    result = csv_service.import_file(file)

    return jsonify(result.to_dict()), 200 if result.success else 400


@listing_import_bp.route('/rentcast/sync', methods=['POST'])
def start_rentcast_sync():
    """Queue a full-refresh RentCast sync for one market"""
    payload = request.get_json(silent=True) or {}
    city = payload.get('city') or current_app.config.get('RENTCAST_DEFAULT_CITY')
    state = payload.get('state') or current_app.config.get('RENTCAST_DEFAULT_STATE')
    property_type = payload.get('property_type') or current_app.config.get('RENTCAST_DEFAULT_PROPERTY_TYPE')

    task = sync_rentcast_listings.delay(city=city, state=state, property_type=property_type)
    logger.info("Queued RentCast sync", task_id=task.id, city=city, state=state)

    return jsonify({'task_id': task.id, 'status': 'queued', 'city': city, 'state': state}), 202


@listing_import_bp.route('/tasks/<task_id>', methods=['GET'])
def task_status(task_id):
    """Progress of a queued import"""
    try:
        return jsonify(get_task_progress(task_id))
    except Exception as e:
        logger.error("Failed to read task progress", task_id=task_id, error=str(e))
        return jsonify({'state': 'ERROR', 'error': f'Error getting progress: {str(e)}'}), 500
