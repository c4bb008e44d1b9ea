"""Flask application factory."""
import logging
import traceback

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from sales_api.database import init_db
from sales_api.utils.formatters import SalesJSONProvider


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json = SalesJSONProvider(app)
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    is_production = app.config.get('ENV') == 'production'

    # Sentry error tracking, production only
    if app.config.get('SENTRY_DSN') and is_production:
        import os
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for analytics results
    from sales_api.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from sales_api.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* headers from the reverse proxy
    if is_production:
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Error Handlers
    from sales_api.exceptions import SalesError

    @app.errorhandler(SalesError)
    def handle_sales_error(error):
        """Handle domain exceptions as JSON."""
        if error.status_code >= 500:
            app.logger.error(f"SalesError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"SalesError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Error interno del servidor'}), 500

    # Register blueprints
    from sales_api.blueprints.main import main_bp
    from sales_api.blueprints.clients import clients_bp
    from sales_api.blueprints.products import products_bp
    from sales_api.blueprints.sales import sales_bp
    from sales_api.blueprints.tools import tools_bp
    from sales_api.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(tools_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from sales_api.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"App ready: env={app.config.get('ENV')} cache={app.config.get('CACHE_ENABLED')}")

    return app
