import logging
from datetime import datetime

from flask import Blueprint, jsonify
from pymongo.errors import PyMongoError

from extensions import get_ai, get_db, get_mailer, get_storage

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__, url_prefix='/api/health')


@health_bp.route('')
def health():
    return jsonify({'status': 'healthy', 'timestamp': datetime.utcnow().isoformat()})


@health_bp.route('/ai-status')
def ai_status():
    status = get_ai().check_connection()
    body = {
        'status': 'operational' if status['connected'] else 'unavailable',
        'provider': status['provider'],
        'model': status['model'],
        'timestamp': datetime.utcnow().isoformat(),
    }
    if not status['connected']:
        body['error'] = status.get('error')
        return jsonify(body), 503
    return jsonify(body)


@health_bp.route('/system')
def system():
    """Database reachability plus which integrations are configured."""
    try:
        get_db().db.command('ping')
        database = 'connected'
    except PyMongoError as e:
        logger.error(f"Database ping failed: {e}")
        database = 'unavailable'

    return jsonify({
        'status': 'operational' if database == 'connected' else 'degraded',
        'database': database,
        'ai_configured': get_ai().is_configured,
        'storage_configured': get_storage().configured,
        'mail_configured': get_mailer().configured,
        'timestamp': datetime.utcnow().isoformat(),
    }), 200 if database == 'connected' else 503
