"""Tests for :mod:`sessionauth.authenticate`."""

from unittest import TestCase, mock

from .. import authenticate, cookies, sessions, users, util, domain
from ..domain import ErrorKind
from ..exceptions import UnknownUsername, UnknownEmail, EmptyPassword, \
    IncorrectPassword
from .util import temporary_db


class TestAuthenticate(TestCase):
    """Tests for :meth:`.Authenticator.authenticate`."""

    def setUp(self):
        """Use the default password verifier."""
        self.authenticator = authenticate.Authenticator()

    def test_username(self):
        """The user can authenticate with their username."""
        with temporary_db():
            user = users.create_user('foouser', 'foo@bar.com', 'foopass')
            self.assertEqual(
                self.authenticator.authenticate('foouser', 'foopass'), user
            )

    def test_email(self):
        """The user can authenticate with their e-mail address."""
        with temporary_db():
            user = users.create_user('foouser', 'foo@bar.com', 'foopass')
            self.assertEqual(
                self.authenticator.authenticate('foo@bar.com', 'foopass'),
                user
            )

    def test_username_with_at_sign(self):
        """A username that looks like an e-mail address is tried first."""
        with temporary_db():
            user = users.create_user('foo@baz.org', 'foo@bar.com', 'foopass')
            self.assertEqual(
                self.authenticator.authenticate('foo@baz.org', 'foopass'),
                user
            )

    def test_unknown_username(self):
        """An unknown username is rejected."""
        with temporary_db():
            with self.assertRaises(UnknownUsername):
                self.authenticator.authenticate('nobody', 'foopass')

    def test_unknown_email(self):
        """An unknown e-mail address is rejected."""
        with temporary_db():
            with self.assertRaises(UnknownEmail):
                self.authenticator.authenticate('nobody@bar.com', 'foopass')

    def test_empty_password(self):
        """An empty password is rejected before it is checked."""
        verify = mock.MagicMock(return_value=True)
        authenticator = authenticate.Authenticator(verify_password=verify)
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass',
                              hasher=lambda p: f'plainhash{p}')
            with self.assertRaises(EmptyPassword):
                authenticator.authenticate('foouser', '')
            self.assertEqual(verify.call_count, 0)

    def test_incorrect_password(self):
        """An incorrect password is rejected."""
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass')
            with self.assertRaises(IncorrectPassword):
                self.authenticator.authenticate('foouser', 'barpass')

    def test_custom_verifier(self):
        """The password check is delegated to the verifier."""
        def verify(stored, candidate):
            return stored == f'plainhash{candidate}'

        authenticator = authenticate.Authenticator(verify_password=verify)
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass',
                              hasher=lambda p: f'plainhash{p}')
            user = authenticator.authenticate('foouser', 'foopass')
            self.assertEqual(user.username, 'foouser')


class TestSignIn(TestCase):
    """Tests for :meth:`.Authenticator.sign_in`."""

    def setUp(self):
        """Use the default password verifier."""
        self.authenticator = authenticate.Authenticator()

    def test_failures(self):
        """Failures are returned, not raised."""
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass')
            for (username, password), kind in [
                    (('nobody', 'foopass'),
                     ErrorKind.INVALID_CREDENTIALS_IDENTITY),
                    (('nobody@bar.com', 'foopass'),
                     ErrorKind.INVALID_CREDENTIALS_IDENTITY),
                    (('foouser', ''), ErrorKind.EMPTY_PASSWORD),
                    (('foouser', 'barpass'), ErrorKind.INCORRECT_PASSWORD)]:
                result = self.authenticator.sign_in(username, password)
                self.assertFalse(result.succeeded)
                self.assertIsNone(result.cookies)
                self.assertEqual(result.error.kind, kind)
            self.assertEqual(sessions.get_instance(1).get_all(), [],
                             'No session is created for a failed sign-in')

    @mock.patch(f'{util.__name__}.now')
    def test_session_duration(self, mock_now):
        """Without ``remember``, cookies last two days."""
        mock_now.return_value = 1_600_000_000
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass')
            result = self.authenticator.sign_in('foouser', 'foopass',
                                                ip='10.0.0.1', ua='Foo/1.0')
            self.assertTrue(result.succeeded)
            self.assertEqual(result.cookies.expiration,
                             1_600_000_000 + 2 * 24 * 3600)
            self.assertEqual(result.cookies.expire,
                             result.cookies.expiration)

            session, = sessions.get_instance(result.user.user_id).get_all()
            self.assertEqual(session.expiration, result.cookies.expiration)
            self.assertEqual(session.ip, '10.0.0.1')
            self.assertEqual(session.ua, 'Foo/1.0')

    @mock.patch(f'{util.__name__}.now')
    def test_remember_duration(self, mock_now):
        """With ``remember``, cookies last 14 days, kept 12 hours longer."""
        mock_now.return_value = 1_600_000_000
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass')
            result = self.authenticator.sign_in('foouser', 'foopass',
                                                remember=True)
            expiration = 1_600_000_000 + 14 * 24 * 3600
            self.assertEqual(result.cookies.expiration, expiration)
            self.assertEqual(result.cookies.expire, expiration + 12 * 3600)

    def test_configured_duration(self):
        """Durations can be configured."""
        with temporary_db(AUTH_SESSION_DURATION=60):
            users.create_user('foouser', 'foo@bar.com', 'foopass')
            with mock.patch(f'{util.__name__}.now') as mock_now:
                mock_now.return_value = 1_600_000_000
                result = self.authenticator.sign_in('foouser', 'foopass')
            self.assertEqual(result.cookies.expiration, 1_600_000_060)

    def test_cookies_share_one_session(self):
        """Both cookies carry the same token, and verify in their scheme."""
        with temporary_db():
            users.create_user('foouser', 'foo@bar.com', 'foopass')
            result = self.authenticator.sign_in('foouser', 'foopass')
            auth_cookies = result.cookies
            self.assertIsInstance(auth_cookies, domain.AuthCookies)
            self.assertEqual(cookies.parse_token(auth_cookies.secure_auth),
                             auth_cookies.token)
            self.assertEqual(cookies.parse_token(auth_cookies.logged_in),
                             auth_cookies.token)
            self.assertNotEqual(auth_cookies.secure_auth,
                                auth_cookies.logged_in)
            user_id = result.user.user_id
            self.assertEqual(
                cookies.validate(auth_cookies.secure_auth,
                                 cookies.SECURE_AUTH), user_id
            )
            self.assertEqual(
                cookies.validate(auth_cookies.logged_in, cookies.LOGGED_IN),
                user_id
            )
            self.assertEqual(len(sessions.get_instance(user_id).get_all()),
                             1)


class TestCurrentUser(TestCase):
    """Tests for resolving users and contexts from cookies."""

    def setUp(self):
        """Use a cheap password verifier."""
        self.authenticator = authenticate.Authenticator(
            verify_password=lambda stored, pw: stored == f'plainhash{pw}',
            is_super_admin=lambda user_id: False
        )

    def sign_in(self, username='foouser'):
        users.create_user(username, f'{username}@bar.com', 'foopass',
                          hasher=lambda p: f'plainhash{p}')
        return self.authenticator.sign_in(username, 'foopass')

    def test_resolve_current_user(self):
        """The user is resolved from a valid ``logged_in`` cookie."""
        with temporary_db():
            result = self.sign_in()
            user = self.authenticator.resolve_current_user(
                result.cookies.logged_in
            )
            self.assertEqual(user, result.user)
            self.assertIsNone(self.authenticator.resolve_current_user(
                result.cookies.secure_auth
            ), 'The secure_auth cookie is not accepted in its place')
            self.assertIsNone(self.authenticator.resolve_current_user(None))
            self.assertIsNone(self.authenticator.resolve_current_user('f|o'))

    def test_load_context(self):
        """The context carries the user, capabilities and token."""
        with temporary_db():
            result = self.sign_in()
            caps = self.authenticator.capabilities(result.user.user_id)
            caps.add_cap('edit_posts')

            context = self.authenticator.load_context(
                result.cookies.logged_in
            )
            self.assertTrue(context.is_authenticated)
            self.assertEqual(context.user, result.user)
            self.assertEqual(context.token, result.cookies.token)
            self.assertTrue(context.can('edit_posts'))
            self.assertFalse(context.can('delete_posts'))

    def test_anonymous_context(self):
        """Without a valid cookie the context is anonymous."""
        with temporary_db():
            context = self.authenticator.load_context(None)
            self.assertFalse(context.is_authenticated)
            self.assertFalse(context.can('exist'))

    def test_sign_out(self):
        """After signing out, the cookies no longer validate."""
        with temporary_db():
            result = self.sign_in()
            self.assertTrue(
                self.authenticator.sign_out(result.cookies.logged_in)
            )
            self.assertIsNone(cookies.validate(result.cookies.logged_in))
            self.assertIsNone(cookies.validate(result.cookies.secure_auth,
                                               cookies.SECURE_AUTH))
            self.assertFalse(
                self.authenticator.sign_out(result.cookies.logged_in),
                'A revoked cookie cannot sign out again'
            )

    def test_sign_out_others(self):
        """Other sessions of the user end; the current one survives."""
        with temporary_db():
            first = self.sign_in()
            second = self.authenticator.sign_in('foouser', 'foopass')
            third = self.authenticator.sign_in('foouser', 'foopass')

            self.assertTrue(
                self.authenticator.sign_out_others(second.cookies.logged_in)
            )
            self.assertIsNone(cookies.validate(first.cookies.logged_in))
            self.assertIsNotNone(cookies.validate(second.cookies.logged_in))
            self.assertIsNone(cookies.validate(third.cookies.logged_in))

    def test_revoke_user_sessions(self):
        """Revoking sessions logs the user out everywhere."""
        with temporary_db():
            first = self.sign_in()
            other = self.sign_in('baruser')
            authenticate.revoke_user_sessions(first.user.user_id)
            self.assertIsNone(cookies.validate(first.cookies.logged_in))
            self.assertIsNotNone(cookies.validate(other.cookies.logged_in))

            authenticate.revoke_user_sessions(999)
