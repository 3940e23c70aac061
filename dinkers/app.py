import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_cors import CORS
from dinkers.config import DEFAULT_SECRET_KEY, config

db = SQLAlchemy()
socketio = SocketIO()

logger = logging.getLogger(__name__)


def _allowed_origins(raw_origins):
    """'*' or a list of explicit origins from a list or a comma separated string."""
    if isinstance(raw_origins, (list, tuple, set)):
        items = list(raw_origins)
    else:
        items = str(raw_origins or '').split(',')
    origins = [str(item).strip() for item in items if item and str(item).strip()]
    if not origins or origins == ['*']:
        return '*'
    return origins


def _check_production_settings(app, allowed_origins):
    secret_key = str(app.config.get('SECRET_KEY') or '').strip()
    if secret_key in ('', DEFAULT_SECRET_KEY):
        raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
    if allowed_origins == '*':
        raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')


def _configure_logging(app):
    logging.basicConfig(
        level=logging.DEBUG if app.config.get('DEBUG') else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def _register_error_handlers(app):
    from dinkers.services.errors import MatchmakingError

    @app.errorhandler(MatchmakingError)
    def _matchmaking_error(error):
        if error.http_status >= 500:
            logger.error('Matchmaking failure (%s): %s', error.kind.value, error.message)
        return jsonify(error.to_dict()), error.http_status


def create_app(config_name='development'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.config['JWT_SECRET'] = app.config.get('JWT_SECRET') or app.config['SECRET_KEY']

    allowed_origins = _allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS'))
    if str(config_name).strip().lower() == 'production':
        _check_production_settings(app, allowed_origins)

    _configure_logging(app)

    from dinkers.services.debug_log import MatchmakerDebugConfig
    app.extensions['matchmaker_debug'] = MatchmakerDebugConfig.from_app_config(app.config)

    from dinkers.routes.groups import groups_bp
    from dinkers.routes.players import players_bp
    from dinkers.routes.matches import matches_bp

    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )
    CORS(app, resources={r'/api/*': {'origins': allowed_origins}})
    _register_error_handlers(app)

    for blueprint in (groups_bp, players_bp, matches_bp):
        app.register_blueprint(blueprint, url_prefix='/api/groups')

    with app.app_context():
        from dinkers import models  # noqa: F401
        db.create_all()

    return app
