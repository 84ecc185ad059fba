"""
API v1 Routes: health check.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import text

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.helpers import api_error, api_success
from boxoffice.extensions import db, limiter

logger = logging.getLogger(__name__)


@api_bp.route('/health', methods=['GET'])
@limiter.exempt
def api_health():
    """Liveness plus a database round trip."""
    try:
        db.session.execute(text('SELECT 1'))
    except Exception:
        db.session.rollback()
        logger.exception('Health check: database unreachable')
        return api_error('unhealthy', 'Database unreachable.', 503)

    return api_success({
        'status': 'ok',
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })
