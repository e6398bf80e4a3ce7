"""Tests for :class:`sessionauth.auth.Auth` with a live application."""

from unittest import TestCase, mock

from flask import Flask, request, make_response, jsonify

from .. import Auth, set_auth_cookies, clear_auth_cookies, current_context
from ..decorators import scoped
from ... import capabilities, domain, users, util
from ...exceptions import Unavailable
from ...tests.util import create_app


def create_web_app() -> Flask:
    app = create_app(AUTH_COOKIE_SECURE=False)
    Auth(app)

    @app.route('/login', methods=['POST'])
    def login():
        authenticator = app.extensions['sessionauth'].authenticator
        result = authenticator.sign_in(request.form['log'],
                                       request.form['pwd'],
                                       remember='rememberme' in request.form)
        if not result.succeeded:
            return jsonify(error=result.error.kind.value), 401
        return set_auth_cookies(make_response('ok'), result.cookies)

    @app.route('/logout')
    def logout():
        authenticator = app.extensions['sessionauth'].authenticator
        authenticator.sign_out(request.cookies.get('logged_in'))
        return clear_auth_cookies(make_response('bye'))

    @app.route('/me')
    def me():
        context = current_context()
        if not context.is_authenticated:
            return 'anonymous'
        return context.user.username

    @app.route('/posts', methods=['POST'])
    @scoped('edit_posts')
    def create_post():
        return 'created', 201

    with app.app_context():
        util.create_all()
        user = users.create_user('foouser', 'foo@bar.com', 'foopass')
        roles = capabilities.Roles()
        roles.add_role('author', 'Author', {'edit_posts': True})
        users.create_user('baruser', 'bar@bar.com', 'barpass')
        capabilities.UserCapabilities(user.user_id).set_role('author')
    return app


class TestAuthExtension(TestCase):
    """The auth context is loaded from the ``logged_in`` cookie."""

    def setUp(self):
        """Create an app with two users; ``foouser`` is an author."""
        self.app = create_web_app()
        self.client = self.app.test_client()

    def test_anonymous(self):
        """Without cookies the request is anonymous."""
        response = self.client.get('/me')
        self.assertEqual(response.data, b'anonymous')
        response = self.client.post('/posts')
        self.assertEqual(response.status_code, 401)

    def test_failed_login(self):
        """Failed logins set no cookies."""
        response = self.client.post('/login', data={'log': 'foouser',
                                                    'pwd': 'nope'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json['error'], 'IncorrectPassword')
        self.assertNotIn('Set-Cookie', response.headers)

    def test_login_and_logout(self):
        """Log in, use the cookies, and log out."""
        response = self.client.post('/login', data={'log': 'foouser',
                                                    'pwd': 'foopass'})
        self.assertEqual(response.status_code, 200)
        set_cookies = response.headers.getlist('Set-Cookie')
        self.assertEqual(len(set_cookies), 2)
        for header in set_cookies:
            self.assertIn('HttpOnly', header)
            self.assertIn('Path=/', header)

        logged_in = self.client.get_cookie('logged_in').value
        self.assertEqual(self.client.get('/me').data, b'foouser')
        self.assertEqual(self.client.post('/posts').status_code, 201)

        self.client.get('/logout')
        self.assertEqual(self.client.get('/me').data, b'anonymous')

        # Replaying the old cookie does not work either.
        response = self.client.get('/me',
                                   headers={'Cookie': f'logged_in={logged_in}'})
        self.assertEqual(response.data, b'anonymous')

    def test_forbidden(self):
        """A user without the capability is forbidden."""
        self.client.post('/login', data={'log': 'bar@bar.com',
                                         'pwd': 'barpass'})
        self.assertEqual(self.client.get('/me').data, b'baruser')
        self.assertEqual(self.client.post('/posts').status_code, 403)

    def test_forged_cookie(self):
        """A cookie that does not verify is ignored."""
        cookie = 'foouser|9999999999|sometoken|' + 'a' * 64
        response = self.client.get('/me',
                                   headers={'Cookie': f'logged_in={cookie}'})
        self.assertEqual(response.data, b'anonymous')

    def test_non_ascii_cookie(self):
        """A cookie with non-ASCII fields is ignored, not an error."""
        expiration = util.now() + 3600
        for cookie in [f'foouser|{expiration}|x|é',
                       f'foouser|{expiration}|é|{"a" * 64}']:
            response = self.client.get(
                '/me', headers={'Cookie': f'logged_in={cookie}'}
            )
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.data, b'anonymous')

    @mock.patch('retry.api.time.sleep')
    def test_database_unavailable(self, mock_sleep):
        """Loading the context is retried when the database is down."""
        extension = self.app.extensions['sessionauth']
        with mock.patch.object(extension.authenticator, 'load_context') \
                as mock_load:
            mock_load.side_effect = [Unavailable('down'), domain.AuthContext()]
            response = self.client.get(
                '/me', headers={'Cookie': 'logged_in=foo|1|2|3'}
            )
            self.assertEqual(response.data, b'anonymous')
            self.assertEqual(mock_load.call_count, 2)

            mock_load.reset_mock()
            mock_load.side_effect = Unavailable('down')
            response = self.client.get(
                '/me', headers={'Cookie': 'logged_in=foo|1|2|3'}
            )
            self.assertEqual(response.status_code, 500)
            self.assertEqual(mock_load.call_count, 3)
