"""
Cookie authentication, revocable sessions and capability-based authorization.

This package signs users in with a username (or e-mail address) and password,
issues a pair of signed auth cookies bound to a server-side session token, and
resolves what each authenticated user is allowed to do from their roles and
individual capabilities.

Quick start
-----------

1. Install this package into your virtual environment.
2. Set the signing secrets in your application config:
   ``AUTH_KEY_SECURE_AUTH``, ``AUTH_SALT_SECURE_AUTH``, ``AUTH_KEY_LOGGED_IN``
   and ``AUTH_SALT_LOGGED_IN``.
3. Install :class:`sessionauth.auth.Auth` onto your application. The
   :class:`.domain.AuthContext` of the current request is then available as
   ``flask.request.auth``.

.. code-block:: python

   from flask import Flask, request, make_response
   from sessionauth import auth
   from sessionauth.auth.decorators import scoped


   def create_web_app() -> Flask:
       app = Flask('foo')
       app.config.from_pyfile('config.py')
       auth.Auth(app)
       return app

   @app.route('/login', methods=['POST'])
   def login():
       authenticator = app.extensions['sessionauth'].authenticator
       result = authenticator.sign_in(request.form['log'],
                                      request.form['pwd'],
                                      remember='rememberme' in request.form)
       if not result.succeeded:
           return 'Please log in again', 401
       return auth.set_auth_cookies(make_response('ok'), result.cookies)

   @app.route('/posts', methods=['POST'])
   @scoped('publish_posts')
   def publish():
       ...

"""

from .domain import User, Role, Session, AuthContext, AuthCookies, \
    AuthFailure, SignIn, ErrorKind
