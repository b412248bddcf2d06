# app.py

from flask import Flask, g, request, jsonify
from config import get_config
from extensions import db, migrate
import uuid
from werkzeug.middleware.proxy_fix import ProxyFix
from logging_config import setup_logging, get_logger

# Configure logging as early as possible
setup_logging(app_name="listings-crm", log_level="INFO")
logger = get_logger(__name__)


def create_app(config_name=None, test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize app with config
    config_class.init_app(app)

    if test_config:
        app.config.update(test_config)

    setup_logging(app_name="listings-crm", log_level=app.config.get('LOG_LEVEL', 'INFO'))

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)
    migrate.init_app(app, db)

    # Service registry with lazy loading
    from services.registry import ServiceRegistry, ServiceLifecycle
    registry = ServiceRegistry()

    registry.register_factory('db_session', lambda: db.session)

    # Repositories
    registry.register_factory(
        'property_repository',
        lambda db_session: _create_property_repository(db_session),
        dependencies=['db_session']
    )
    registry.register_factory(
        'floor_plan_repository',
        lambda db_session: _create_floor_plan_repository(db_session),
        dependencies=['db_session']
    )
    registry.register_factory(
        'unit_repository',
        lambda db_session: _create_unit_repository(db_session),
        dependencies=['db_session']
    )

    # External APIs
    registry.register_factory('rentcast_client', lambda: _create_rentcast_client(app.config))
    registry.register_factory('geocoder', lambda: _create_geocoder(app.config))

    # Import pipeline. Orchestrators carry per-run geocode rate limiting,
    # so everything built on them is transient.
    registry.register_factory(
        'listing_import_orchestrator',
        lambda property_repository, floor_plan_repository, unit_repository, geocoder:
            _create_listing_import_orchestrator(
                property_repository, floor_plan_repository, unit_repository, geocoder, app.config
            ),
        lifecycle=ServiceLifecycle.TRANSIENT,
        dependencies=['property_repository', 'floor_plan_repository', 'unit_repository', 'geocoder']
    )
    registry.register_factory(
        'rentcast_sync',
        lambda rentcast_client, property_repository, listing_import_orchestrator:
            _create_rentcast_sync_service(
                rentcast_client, property_repository, listing_import_orchestrator, app.config
            ),
        lifecycle=ServiceLifecycle.TRANSIENT,
        dependencies=['rentcast_client', 'property_repository', 'listing_import_orchestrator']
    )
    registry.register_factory(
        'listing_csv_import',
        lambda listing_import_orchestrator: _create_listing_csv_import_service(listing_import_orchestrator),
        lifecycle=ServiceLifecycle.TRANSIENT,
        dependencies=['listing_import_orchestrator']
    )

    # Validate all dependencies are registered
    errors = registry.validate_dependencies()
    if errors:
        for error in errors:
            logger.error(f"Service dependency error: {error}")
        raise RuntimeError(f"Service dependency errors: {errors}")

    if app.debug:
        logger.debug("Service initialization order", order=registry.get_initialization_order())

    # Attach registry to app
    app.services = registry

    # Add request tracking middleware
    @app.before_request
    def before_request():
        g.request_id = str(uuid.uuid4())
        logger.info("Request started",
                    request_id=g.request_id,
                    method=request.method,
                    path=request.path)

    @app.after_request
    def after_request(response):
        logger.info("Request completed",
                    request_id=getattr(g, 'request_id', None),
                    status_code=response.status_code)
        return response

    # Global error handlers
    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Internal server error",
                     request_id=getattr(g, 'request_id', None),
                     error=str(error))
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(404)
    def not_found_error(error):
        logger.warning("Page not found",
                       request_id=getattr(g, 'request_id', None),
                       path=request.path)
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({'success': False, 'errors': [{'error': 'Uploaded file is too large'}]}), 413

    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring"""
        from sqlalchemy import text
        health_status = {
            'status': 'healthy',
            'service': 'listings-crm'
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['database'] = 'connected'
        except Exception as e:
            health_status['database'] = 'error'
            health_status['status'] = 'degraded'
            logger.error(f"Health check database error: {e}")

        return jsonify(health_status), 200 if health_status['status'] == 'healthy' else 503

    # Register blueprints for routes
    from routes.listing_import_routes import listing_import_bp
    app.register_blueprint(listing_import_bp, url_prefix='/listings/import')

    # Register CLI commands
    from scripts import commands
    commands.init_app(app)

    return app


def _create_property_repository(db_session):
    from repositories.property_repository import PropertyRepository
    return PropertyRepository(session=db_session)


def _create_floor_plan_repository(db_session):
    from repositories.floor_plan_repository import FloorPlanRepository
    return FloorPlanRepository(session=db_session)


def _create_unit_repository(db_session):
    from repositories.unit_repository import UnitRepository
    return UnitRepository(session=db_session)


def _create_rentcast_client(config):
    from services.rentcast_api_client import RentCastAPIClient
    return RentCastAPIClient.from_config(config)


def _create_geocoder(config):
    """Mapbox geocoder, or None when no access token is configured"""
    from services.geocoding_service import MapboxGeocoder
    geocoder = MapboxGeocoder.from_config(config)
    if geocoder is None:
        logger.info("MAPBOX_ACCESS_TOKEN not set; new properties without coordinates will not be geocoded")
    return geocoder


def _create_listing_import_orchestrator(property_repository, floor_plan_repository,
                                        unit_repository, geocoder, config):
    from services.geocoding_service import GeocodeResolver
    from services.listing_import_orchestrator import ListingImportOrchestrator

    geocode_resolver = None
    if geocoder is not None:
        geocode_resolver = GeocodeResolver(geocoder, delay_seconds=config.get('GEOCODE_DELAY_SECONDS', 0.15))

    return ListingImportOrchestrator(
        property_repository=property_repository,
        floor_plan_repository=floor_plan_repository,
        unit_repository=unit_repository,
        geocode_resolver=geocode_resolver
    )


def _create_rentcast_sync_service(rentcast_client, property_repository, orchestrator, config):
    from services.rentcast_sync_service import RentCastSyncService
    return RentCastSyncService(
        api_client=rentcast_client,
        property_repository=property_repository,
        orchestrator=orchestrator,
        page_limit=config.get('RENTCAST_PAGE_LIMIT', 500),
        safety_cap=config.get('RENTCAST_SAFETY_CAP', 2000),
        default_city=config.get('RENTCAST_DEFAULT_CITY', 'San Antonio'),
        default_state=config.get('RENTCAST_DEFAULT_STATE', 'TX'),
        default_property_type=config.get('RENTCAST_DEFAULT_PROPERTY_TYPE', 'Apartment')
    )


def _create_listing_csv_import_service(orchestrator):
    from services.listing_csv_import_service import ListingCSVImportService
    return ListingCSVImportService(orchestrator=orchestrator)
