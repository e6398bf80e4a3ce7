"""Flask configuration for an application using sessionauth."""

import os

AUTH_DATABASE_URI = os.environ.get('AUTH_DATABASE_URI', 'sqlite:///:memory:')
SQLALCHEMY_DATABASE_URI = AUTH_DATABASE_URI
SQLALCHEMY_TRACK_MODIFICATIONS = False

AUTH_DB_PREFIX = os.environ.get('AUTH_DB_PREFIX', 'wp_')
"""Site-specific prefix for capability, role and level metadata keys."""

AUTH_KEY_SECURE_AUTH = os.environ.get('AUTH_KEY_SECURE_AUTH')
AUTH_SALT_SECURE_AUTH = os.environ.get('AUTH_SALT_SECURE_AUTH')
AUTH_KEY_LOGGED_IN = os.environ.get('AUTH_KEY_LOGGED_IN')
AUTH_SALT_LOGGED_IN = os.environ.get('AUTH_SALT_LOGGED_IN')

AUTH_SECURE_AUTH_COOKIE_NAME = os.environ.get('AUTH_SECURE_AUTH_COOKIE_NAME',
                                              'secure_auth')
AUTH_LOGGED_IN_COOKIE_NAME = os.environ.get('AUTH_LOGGED_IN_COOKIE_NAME',
                                            'logged_in')
AUTH_COOKIE_DOMAIN = os.environ.get('AUTH_COOKIE_DOMAIN')
AUTH_COOKIE_SECURE = os.environ.get('AUTH_COOKIE_SECURE', '1') == '1'

AUTH_SUPER_ADMINS = os.environ.get('AUTH_SUPER_ADMINS', '')
"""Comma-delimited usernames with every capability."""

AUTH_REMEMBER_DURATION = int(os.environ.get('AUTH_REMEMBER_DURATION',
                                            14 * 24 * 3600))
AUTH_SESSION_DURATION = int(os.environ.get('AUTH_SESSION_DURATION',
                                           2 * 24 * 3600))
AUTH_REMEMBER_GRACE = int(os.environ.get('AUTH_REMEMBER_GRACE', 12 * 3600))

LOGLEVEL = int(os.environ.get('LOGLEVEL', '20'))
