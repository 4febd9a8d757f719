from flask import Flask, jsonify
import os
import logging

from config import Config
from errors import PortalError
from extensions import EXTENSION_KEY, limiter
from models import Database, db
from routes import register_blueprints
from utils.ai_service import AIService
from utils.cloudinary_storage import CloudinaryStorage
from utils.gmail import GmailSender
from utils.google_oauth import GoogleLogin
from utils.scheduler import init_scheduler

logger = logging.getLogger(__name__)


def create_app(config=None, database: Database = None, ai_service=None, storage=None, mailer=None,
               google_login=None) -> Flask:
    """
    Build the API app.

    Every external service can be handed in; anything left out is built from
    the configuration. Tests pass a mongomock-backed ``Database`` and fakes.
    """
    app = Flask(__name__)
    app.config.from_object(config or Config)

    # Configure logging
    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))

    limiter.init_app(app)

    if database is None:
        database = db
        database.init_app(app)

    app.extensions[EXTENSION_KEY] = {
        'database': database,
        'ai': ai_service or AIService(app.config),
        'storage': storage or CloudinaryStorage.from_config(app.config),
        'mailer': mailer or GmailSender.from_config(app.config),
        'google_login': google_login or GoogleLogin.from_config(app.config),
    }

    register_blueprints(app)
    _register_error_handlers(app)

    if app.config.get('ENABLE_SCHEDULER'):
        services = app.extensions[EXTENSION_KEY]
        app.extensions['scheduler'] = init_scheduler(database, services['ai'], app.config,
                                                     mailer=services['mailer'])

    logger.info(f"SkillVerse API ready (AI provider: {app.extensions[EXTENSION_KEY]['ai'].provider})")
    return app


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _register_error_handlers(app):

    @app.errorhandler(PortalError)
    def portal_error(e):
        if e.status_code >= 500:
            logger.error(f"{e.__class__.__name__}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Route not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({'error': 'File is too large'}), 413

    @app.errorhandler(429)
    def rate_limit(e):
        return jsonify({'error': 'Rate limit exceeded. Please try again later.'}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({'error': 'Server error'}), 500


# ============================================================================
# MAIN
# ============================================================================

if __name__ == '__main__':
    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
    app.run(host='0.0.0.0', port=port, debug=debug)
