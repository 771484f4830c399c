import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from elevates.config import config
from elevates.extensions import socketio

# Import blueprints
from elevates.accounts.api.auth_routes import auth_bp
from elevates.oauth.api.oauth_routes import oauth_bp
from elevates.google_calendar.api.calendar_routes import calendar_bp
from elevates.clients.api.client_routes import clients_bp
from elevates.finance.api.finance_routes import finance_bp
from elevates.prospects.api.prospect_routes import prospects_bp
from elevates.content.api.content_routes import content_bp
from elevates.integrations.api.integration_routes import integrations_bp
from elevates.integrations.api.xero_routes import xero_bp

# Set up logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

BLUEPRINTS = [
    auth_bp,
    oauth_bp,
    calendar_bp,
    clients_bp,
    finance_bp,
    prospects_bp,
    content_bp,
    integrations_bp,
    xero_bp,
]


def create_app():
    """Build the Flask application with every API blueprint registered"""
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.SECRET_KEY

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    # Enable CORS for the dashboard frontend; the session cookie needs credentials
    CORS(app, origins=config.ALLOWED_ORIGINS,
         supports_credentials=True,
         allow_headers=['Content-Type', 'Authorization'],
         methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'])

    socketio.init_app(app, cors_allowed_origins="*")

    @app.route('/health')
    def health_check():
        return jsonify({'status': 'healthy', 'environment': config.FLASK_ENV})

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith('/api/'):
            return jsonify({'success': False, 'error': 'Not found'}), 404
        return e

    @app.errorhandler(405)
    def method_not_allowed(e):
        if request.path.startswith('/api/'):
            return jsonify({'success': False, 'error': 'Method not allowed'}), 405
        return e

    problems = config.validate_session_settings()
    for problem in problems:
        logger.warning(f"Configuration: {problem}")

    logger.info(f"Elevates API initialized ({len(BLUEPRINTS)} blueprints, env={config.FLASK_ENV})")
    return app


app = create_app()


if __name__ == '__main__':
    # Configure for production vs development
    if config.is_production:
        socketio.run(
            app,
            debug=False,
            host=config.HOST,
            port=config.PORT,
            allow_unsafe_werkzeug=True
        )
    else:
        socketio.run(
            app,
            debug=config.FLASK_DEBUG,
            host=config.HOST,
            port=config.PORT
        )
