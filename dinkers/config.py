import os

basedir = os.path.abspath(os.path.dirname(__file__))

DEFAULT_SECRET_KEY = 'dev-secret-key-change-in-prod'
TRUTHY = {'1', 'true', 'yes', 'on'}


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    return default if raw is None else raw.strip().lower() in TRUTHY


def _env_int(name, default, minimum=1):
    try:
        value = int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default
    return max(minimum, value)


def _database_url(fallback=None):
    """DATABASE_URL with Heroku/Render style postgres:// rewritten for SQLAlchemy."""
    url = os.environ.get('DATABASE_URL') or fallback
    if url and url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


class BaseConfig:
    SECRET_KEY = os.environ.get('SECRET_KEY', DEFAULT_SECRET_KEY)
    JWT_SECRET = os.environ.get('JWT_SECRET', '')  # empty -> SECRET_KEY
    EDITOR_TOKEN_TTL_HOURS = _env_int('EDITOR_TOKEN_TTL_HOURS', 24 * 7)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    MATCHMAKER_DEBUG = _env_bool('MATCHMAKER_DEBUG')
    RECENT_MATCH_LIMIT = _env_int('RECENT_MATCH_LIMIT', 12, minimum=6)
    HISTORY_LIMIT = _env_int('HISTORY_LIMIT', 1000)

    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        'sqlite:///' + os.path.join(basedir, '..', 'dinkers_dev.db')
    )


class TestingConfig(BaseConfig):
    TESTING = True
    MATCHMAKER_DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
