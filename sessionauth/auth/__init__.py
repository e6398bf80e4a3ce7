"""Provides Flask integration for cookie-authenticated requests."""

import logging
from typing import Optional

from flask import Flask, request, Response
from retry import retry

from . import decorators
from .. import domain, util
from ..authenticate import Authenticator
from ..exceptions import Unavailable

logger = logging.getLogger(__name__)


class Auth(object):
    """
    Attaches authentication information to the request.

    Intended for use in a Flask application factory, for example:

    .. code-block:: python

       from flask import Flask
       from sessionauth.auth import Auth
       from someapp import routes


       def create_web_app() -> Flask:
          app = Flask('someapp')
          app.config.from_pyfile('config.py')
          Auth(app)
          app.register_blueprint(routes.blueprint)
          return app

    The :class:`.domain.AuthContext` for the request is available as
    ``flask.request.auth``. It is built once per request from the
    ``logged_in`` cookie.
    """

    def __init__(self, app: Optional[Flask] = None,
                 authenticator: Optional[Authenticator] = None) -> None:
        """
        Initialize ``app`` with the auth hooks.

        Parameters
        ----------
        app : :class:`Flask`
        authenticator : :class:`.Authenticator`
            Supplies the password, meta capability and super admin
            collaborators. A default instance is used if not given.

        """
        self.authenticator = authenticator or Authenticator()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Attach :meth:`.load_context` to the Flask app.

        Parameters
        ----------
        app : :class:`Flask`

        """
        self.app = app
        util.init_app(app)
        app.extensions['sessionauth'] = self
        app.before_request(self.load_context)

        @app.teardown_request
        def teardown_request(exception: Optional[BaseException]) -> None:
            if exception:
                util.current_session().rollback()

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def _get_context(self, cookie: Optional[str]) -> domain.AuthContext:
        return self.authenticator.load_context(cookie)

    def load_context(self) -> None:
        """Resolve the current user and attach the context to the request."""
        cookie_name = self.app.config['AUTH_LOGGED_IN_COOKIE_NAME']
        cookie = request.cookies.get(cookie_name, None)
        if cookie is None:
            request.auth = domain.AuthContext()
            return
        try:
            request.auth = self._get_context(cookie)
        except Unavailable as e:
            logger.error('Could not load auth context: %s', e)
            raise


def set_auth_cookies(response: Response, cookies: domain.AuthCookies,
                     app: Optional[Flask] = None) -> Response:
    """Set both auth cookies on ``response``."""
    config = util.get_application_config(app)
    for name_key, value in [
            ('AUTH_SECURE_AUTH_COOKIE_NAME', cookies.secure_auth),
            ('AUTH_LOGGED_IN_COOKIE_NAME', cookies.logged_in)]:
        response.set_cookie(config[name_key], value,
                            expires=cookies.expire, path='/',
                            domain=config.get('AUTH_COOKIE_DOMAIN'),
                            secure=bool(config.get('AUTH_COOKIE_SECURE')),
                            httponly=True)
    return response


def clear_auth_cookies(response: Response,
                       app: Optional[Flask] = None) -> Response:
    """Expire both auth cookies on ``response``."""
    config = util.get_application_config(app)
    for name_key in ['AUTH_SECURE_AUTH_COOKIE_NAME',
                     'AUTH_LOGGED_IN_COOKIE_NAME']:
        response.set_cookie(config[name_key], '', max_age=0, expires=0,
                            path='/', domain=config.get('AUTH_COOKIE_DOMAIN'))
    return response


def current_context() -> domain.AuthContext:
    """Get the context attached to the current request."""
    context: Optional[domain.AuthContext] = getattr(request, 'auth', None)
    return context if context is not None else domain.AuthContext()
