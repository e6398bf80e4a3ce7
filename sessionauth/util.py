"""Helpers and Flask application integration."""

import os
import logging
from typing import Generator, Any, Optional, Mapping
from datetime import datetime
from contextlib import contextmanager

from pytz import UTC
from flask import Flask, current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.session import Session

from .models import db
from .exceptions import ConfigurationError, Unavailable

logger = logging.getLogger(__name__)

SCHEMES = ('secure_auth', 'logged_in')
"""Cookie schemes; each has its own key and salt."""

DEFAULTS = {
    'AUTH_DATABASE_URI': 'sqlite:///:memory:',
    'AUTH_DB_PREFIX': 'wp_',
    'AUTH_SECURE_AUTH_COOKIE_NAME': 'secure_auth',
    'AUTH_LOGGED_IN_COOKIE_NAME': 'logged_in',
    'AUTH_COOKIE_DOMAIN': None,
    'AUTH_COOKIE_SECURE': True,
    'AUTH_SUPER_ADMINS': '',
    'AUTH_REMEMBER_DURATION': 14 * 24 * 3600,
    'AUTH_SESSION_DURATION': 2 * 24 * 3600,
    'AUTH_REMEMBER_GRACE': 12 * 3600,
}


def now() -> int:
    """Get the current epoch/unix time."""
    return epoch(datetime.now(tz=UTC))


def epoch(t: datetime) -> int:
    """Convert a :class:`.datetime` to UNIX time."""
    delta = t - datetime.fromtimestamp(0, tz=UTC)
    return int(round(delta.total_seconds()))


def from_epoch(t: int) -> datetime:
    """Get a :class:`datetime` from an UNIX timestamp."""
    return datetime.fromtimestamp(t, tz=UTC)


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """Context manager for database transaction."""
    try:
        yield db.session
        # The caller may have explicitly committed already. We only want to
        # commit here if there is anything remaining that is not flushed.
        if db.session.new or db.session.dirty or db.session.deleted:
            db.session.commit()
    except OperationalError as e:
        logger.error('Database unavailable, rolling back: %s', e)
        db.session.rollback()
        raise Unavailable('Database is temporarily unavailable') from e
    except Exception as e:
        logger.warning('Commit failed, rolling back: %s', str(e))
        db.session.rollback()
        raise


def get_application_config(app: Optional[Flask] = None) -> Mapping[str, Any]:
    """
    Get configuration from the Flask application, or the environment.

    Inside an application context this is ``current_app.config``; outside of
    one we fall back to ``os.environ``.
    """
    if app is not None:
        return app.config
    if has_app_context():
        return current_app.config
    return os.environ


def get_config_value(key: str, app: Optional[Flask] = None) -> Any:
    """Get a configuration value, falling back to the package default."""
    return get_application_config(app).get(key, DEFAULTS.get(key))


def init_app(app: Flask) -> None:
    """Set configuration defaults and attach the database to the app."""
    for key, value in DEFAULTS.items():
        app.config.setdefault(key, value)
    app.config.setdefault('SQLALCHEMY_DATABASE_URI',
                          app.config['AUTH_DATABASE_URI'])
    app.config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
    if 'sqlalchemy' not in app.extensions:
        db.init_app(app)


def current_session() -> Session:
    """Get/create database session for this context."""
    return db.session


def create_all() -> None:
    """Create all tables in the database."""
    db.create_all()


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


def is_configured() -> bool:
    """Determine whether the signing secrets for every scheme are set."""
    config = get_application_config()
    return all(config.get(f'AUTH_KEY_{scheme.upper()}')
               and config.get(f'AUTH_SALT_{scheme.upper()}')
               for scheme in SCHEMES)


def get_secret(scheme: str) -> str:
    """
    Get the secret material for a cookie scheme.

    The secret is the configured key followed by the configured salt.
    """
    if scheme not in SCHEMES:
        raise ValueError(f'Unknown cookie scheme: {scheme}')
    config = get_application_config()
    key = config.get(f'AUTH_KEY_{scheme.upper()}')
    salt = config.get(f'AUTH_SALT_{scheme.upper()}')
    if not key or not salt:
        raise ConfigurationError(f'Missing key or salt for {scheme}')
    return f'{key}{salt}'


def get_db_prefix() -> str:
    """Get the site-specific prefix for capability and role keys."""
    prefix: str = get_config_value('AUTH_DB_PREFIX')
    return prefix


def get_duration(remember: bool) -> int:
    """Get the cookie lifetime in seconds."""
    key = 'AUTH_REMEMBER_DURATION' if remember else 'AUTH_SESSION_DURATION'
    return int(get_config_value(key))


def get_grace() -> int:
    """Get the extra seconds a remembered cookie is kept by the browser."""
    return int(get_config_value('AUTH_REMEMBER_GRACE'))


def is_available(**kwargs: Any) -> bool:
    """Check our connection to the database."""
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error('Encountered an error talking to database: %s', e)
        return False
    return True
