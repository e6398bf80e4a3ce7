"""
Provide an API for signing users in and resolving them from cookies.

:class:`Authenticator` is the boundary of this package: failures inside it are
raised as exceptions from :mod:`.exceptions`, but its public methods return
typed results (:class:`.domain.SignIn`, ``None``) rather than raising.
"""

import logging
from typing import Callable, Optional

from . import domain, util, users, cookies, sessions, passwords
from .capabilities import UserCapabilities, Roles, MetaCapMapper, \
    SuperAdminCheck, map_meta_cap as default_map_meta_cap, \
    is_super_admin as default_is_super_admin
from .meta import MetadataStore, store as default_store
from .exceptions import AuthenticationFailed, UnknownUsername, UnknownEmail, \
    EmptyPassword, IncorrectPassword, NoSuchUser

logger = logging.getLogger(__name__)

PasswordVerifier = Callable[[str, str], bool]
"""``(stored_hash, candidate_password) -> bool``."""


class Authenticator(object):
    """
    Signs users in with credentials, and re-authenticates them from cookies.

    Parameters
    ----------
    verify_password : callable
        ``(stored_hash, candidate) -> bool``.
    map_meta_cap : callable
        Passed to :class:`.UserCapabilities`.
    is_super_admin : callable
        Passed to :class:`.UserCapabilities`.
    meta : :class:`.MetadataStore`

    """

    def __init__(self,
                 verify_password: PasswordVerifier = passwords.check_password,
                 map_meta_cap: MetaCapMapper = default_map_meta_cap,
                 is_super_admin: SuperAdminCheck = default_is_super_admin,
                 meta: MetadataStore = default_store) -> None:
        self.verify_password = verify_password
        self.map_meta_cap = map_meta_cap
        self.is_super_admin = is_super_admin
        self.meta = meta

    def _get_user(self, username_or_email: str) -> domain.User:
        """
        Retrieve a user by username, falling back to e-mail address.

        Raises
        ------
        :class:`.UnknownEmail`
            The input looks like an e-mail address, and matches no user.
        :class:`.UnknownUsername`
            The input matches no username.

        """
        user = users.get_user_by('login', username_or_email)
        if user is not None:
            return user
        if '@' in username_or_email:
            user = users.get_user_by('email', username_or_email)
            if user is None:
                raise UnknownEmail('Unknown email address')
            return user
        raise UnknownUsername('Unknown username')

    def authenticate(self, username_or_email: str,
                     password: str) -> domain.User:
        """
        Validate username/password.

        Users may log in with either their username or their email address.

        Raises
        ------
        :class:`.AuthenticationFailed`
            One of :class:`.UnknownUsername`, :class:`.UnknownEmail`,
            :class:`.EmptyPassword` or :class:`.IncorrectPassword`.

        """
        logger.debug('Authenticate with password, user: %s',
                     username_or_email)
        user = self._get_user(username_or_email or '')
        if not password:
            raise EmptyPassword('The password field is empty')
        if not self.verify_password(user.password_hash, password):
            raise IncorrectPassword('The password you entered is incorrect')
        return user

    def issue_cookies(self, user_id: int, remember: bool = False,
                      token: Optional[str] = None, ip: Optional[str] = None,
                      ua: Optional[str] = None) -> domain.AuthCookies:
        """
        Issue both auth cookie values for a user, sharing one session.

        When ``remember`` is set the cookies last 14 days and the browser is
        asked to keep them for a further 12 hours; otherwise they last 2 days.
        """
        expiration = util.now() + util.get_duration(remember)
        expire = expiration + util.get_grace() if remember else expiration
        if not token:
            token, _ = sessions.get_instance(user_id).create(expiration,
                                                             ip=ip, ua=ua)
        return domain.AuthCookies(
            secure_auth=cookies.generate(user_id, expiration,
                                         cookies.SECURE_AUTH, token),
            logged_in=cookies.generate(user_id, expiration,
                                       cookies.LOGGED_IN, token),
            expiration=expiration,
            expire=expire,
            token=token
        )

    def sign_in(self, username_or_email: str, password: str,
                remember: bool = False, ip: Optional[str] = None,
                ua: Optional[str] = None) -> domain.SignIn:
        """
        Authenticate with credentials and issue auth cookies.

        Parameters
        ----------
        username_or_email : str
        password : str
        remember : bool
            Whether to issue long-lived cookies.
        ip : str
        ua : str
            Client metadata recorded on the session; taken from the current
            request if not given.

        Returns
        -------
        :class:`.domain.SignIn`
            Either ``user`` and ``cookies``, or ``error``.

        """
        try:
            user = self.authenticate(username_or_email, password)
        except AuthenticationFailed as e:
            logger.info('Sign-in failed (%s)', e.kind.value)
            return domain.SignIn(error=domain.AuthFailure(e.kind, str(e)))
        auth_cookies = self.issue_cookies(user.user_id, remember,
                                          ip=ip, ua=ua)
        logger.debug('User %s signed in', user.user_id)
        return domain.SignIn(user=user, cookies=auth_cookies)

    def resolve_current_user(self, cookie: Optional[str]) \
            -> Optional[domain.User]:
        """Get the user authenticated by a ``logged_in`` cookie, or ``None``."""
        user_id = cookies.validate(cookie, cookies.LOGGED_IN)
        if user_id is None:
            return None
        return users.get_user_by('id', user_id)

    def capabilities(self, user_id: int,
                     roles: Optional[Roles] = None) -> UserCapabilities:
        """Get the capability resolver for a user."""
        return UserCapabilities(user_id, roles=roles,
                                map_meta_cap=self.map_meta_cap,
                                is_super_admin=self.is_super_admin,
                                meta=self.meta)

    def load_context(self, cookie: Optional[str]) -> domain.AuthContext:
        """Build the authentication context for a request."""
        user = self.resolve_current_user(cookie)
        if user is None:
            return domain.AuthContext()
        return domain.AuthContext(user=user,
                                  capabilities=self.capabilities(user.user_id),
                                  token=cookies.parse_token(cookie))

    def sign_out(self, cookie: Optional[str]) -> bool:
        """
        Destroy the session behind a valid ``logged_in`` cookie.

        Returns whether a session was destroyed.
        """
        user_id = cookies.validate(cookie, cookies.LOGGED_IN)
        token = cookies.parse_token(cookie)
        if user_id is None or token is None:
            return False
        sessions.get_instance(user_id).destroy(token)
        logger.debug('User %s signed out', user_id)
        return True

    def sign_out_others(self, cookie: Optional[str]) -> bool:
        """Destroy every other session of the user behind ``cookie``."""
        user_id = cookies.validate(cookie, cookies.LOGGED_IN)
        token = cookies.parse_token(cookie)
        if user_id is None or token is None:
            return False
        sessions.get_instance(user_id).destroy_others(token)
        return True


def revoke_user_sessions(user_id: int) -> None:
    """Destroy all sessions of a user, e.g. after a password reset."""
    try:
        users.get_user_by_id(user_id)
    except NoSuchUser:
        logger.debug('No user %s; nothing to revoke', user_id)
        return
    sessions.get_instance(user_id).destroy_all()
