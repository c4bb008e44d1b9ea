"""Main blueprint: health check."""
from datetime import datetime

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sales_api.database import get_session

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Liveness plus a trivial round-trip to the database."""
    database = 'ok'
    try:
        get_session().execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        current_app.logger.error(f"Health check database error: {e}")
        database = 'unavailable'

    status_code = 200 if database == 'ok' else 503
    return jsonify({
        'status': 'ok' if status_code == 200 else 'degraded',
        'database': database,
        'timestamp': datetime.now().isoformat()
    }), status_code
