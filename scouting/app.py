import os
import logging

from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from shared.errors import InternalFault, ScoutingError
from shared.pubsub import BackgroundPublisher, PubSubClient
from .auth import optional_auth_context
from .config import config
from .event_registry import EventRegistry
from .identity_store import IdentityStore
from .log_sink import configure_logging, log_internal_fault
from .models import db
from .observation_store import ObservationStore
from .realm_registry import RealmRegistry
from .tba_client import TBAClient

logger = logging.getLogger(__name__)


def create_app(config_name: str = None, **overrides) -> Flask:
    """Application factory for the scouting service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.config.update(overrides)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)

    # Initialize services
    app.identities = IdentityStore()
    app.observations = ObservationStore()
    app.realms = RealmRegistry()
    app.events = EventRegistry(tba=TBAClient.from_config(app.config))
    app.publisher = None
    if app.config['REDIS_URL']:
        app.publisher = BackgroundPublisher(
            PubSubClient.from_url(app.config['REDIS_URL']),
            maxsize=app.config['NOTIFICATION_QUEUE_SIZE']
        ).start()

    # Create tables
    with app.app_context():
        db.create_all()

    register_error_handlers(app)
    register_routes(app)

    logger.info(f"Scouting service created ({config_name})")
    return app


def register_routes(app: Flask):
    from .routes import events, realms, users
    app.register_blueprint(users.bp)
    app.register_blueprint(realms.bp)
    app.register_blueprint(events.bp)

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except SQLAlchemyError as e:
            logger.warning(f"Health check database failure: {e}")
            db_ok = False

        status = 'healthy' if db_ok else 'unhealthy'
        code = 200 if db_ok else 503

        return jsonify({
            'status': status,
            'database': 'connected' if db_ok else 'disconnected',
            'notifications': 'enabled' if app.publisher is not None else 'disabled'
        }), code


def register_error_handlers(app: Flask):
    """Translate typed errors into responses; nothing below this layer builds one."""

    @app.errorhandler(ScoutingError)
    def handle_scouting_error(error: ScoutingError):
        if isinstance(error, InternalFault):
            _log_fault(error)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({'error': error.description, 'kind': 'http'}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        db.session.rollback()
        _log_fault(error)
        fault = InternalFault()
        return jsonify(fault.to_dict()), fault.status_code


def _log_fault(error: BaseException):
    # Identity is re-derived from the request headers for the log line only.
    log_internal_fault(
        operation=request.endpoint or request.path,
        ctx=optional_auth_context(request),
        target=request.view_args,
        exc=error
    )
