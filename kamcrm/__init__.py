"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints, error
handlers and the `flask enrich` CLI group.
"""
import logging
import os
from flask import Flask, jsonify

logger = logging.getLogger('kamcrm')


def _register_error_handlers(app):
    """Map the enrichment error taxonomy onto JSON responses."""
    from kamcrm.errors import (
        ConfigurationError, MalformedResponseError, PersistenceError,
        ProviderError, RateLimitError,
    )
    from kamcrm.services.circuit_breaker import CircuitOpenError

    def _json(status):
        def handler(error):
            logger.error("%s: %s", type(error).__name__, error)
            return jsonify({'error': str(error), 'type': type(error).__name__}), status
        return handler

    # Most specific first: RateLimitError is a ProviderError
    app.register_error_handler(RateLimitError, _json(429))
    app.register_error_handler(ProviderError, _json(502))
    app.register_error_handler(MalformedResponseError, _json(502))
    app.register_error_handler(CircuitOpenError, _json(503))
    app.register_error_handler(ConfigurationError, _json(500))
    app.register_error_handler(PersistenceError, _json(500))


def create_app():
    """Create and configure the Flask application."""
    from kamcrm.logging_config import configure_logging
    from kamcrm.config import SECRET_KEY

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', SECRET_KEY)

    # Register blueprints
    from kamcrm.routes.enrichment import bp as enrichment_bp
    from kamcrm.routes.cron import bp as cron_bp
    from kamcrm.routes.insights import bp as insights_bp
    from kamcrm.routes.records import bp as records_bp
    from kamcrm.routes.monitor import bp as monitor_bp
    from kamcrm.routes.outreach import bp as outreach_bp

    app.register_blueprint(enrichment_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(insights_bp)
    app.register_blueprint(records_bp)
    app.register_blueprint(monitor_bp)
    app.register_blueprint(outreach_bp)

    _register_error_handlers(app)

    from kamcrm.cli import enrich_cli
    app.cli.add_command(enrich_cli)

    # Initialize circuit breakers for external providers
    from kamcrm.extensions import redis_client
    from kamcrm.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them.
    # Schema is managed by Alembic, no create_all() call.
    import importlib
    for name in ('user', 'company', 'lead', 'account', 'opportunity', 'update', 'analysis', 'job_status'):
        importlib.import_module(f'kamcrm.models.{name}')

    return app
