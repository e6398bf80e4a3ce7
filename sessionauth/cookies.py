"""
Provides functions for working with signed auth cookies.

An auth cookie value has four parts separated with ``|``:

1. username
2. expiration, as UNIX time
3. session token (see :mod:`.sessions`)
4. hex HMAC-SHA256 of parts 1-3

The HMAC key is itself derived, per cookie scheme, from the username, a
fragment of the user's stored password hash, the expiration and the token.
Changing the password therefore invalidates every cookie issued before the
change. Two schemes are issued for each login: ``secure_auth`` and
``logged_in``; each has its own secret.

A cookie is valid only if the signature matches *and* the session token is
still live in the session store, so that logout and revocation take effect
immediately even though the cookie itself is unchanged.
"""

import hmac
import hashlib
import logging
from typing import NamedTuple, Optional

from . import util, users, sessions
from .exceptions import CookieMalformed, CookieExpired, \
    CookieSignatureMismatch, SessionRevokedOrUnknown, InvalidCookie, \
    NoSuchUser

logger = logging.getLogger(__name__)

SECURE_AUTH = 'secure_auth'
LOGGED_IN = 'logged_in'


class CookieElements(NamedTuple):
    """The parts of an auth cookie value."""

    username: str
    expiration: int
    token: str
    hmac: str


def unpack(cookie: str) -> CookieElements:
    """
    Split an auth cookie value into its parts.

    Raises
    ------
    :class:`.CookieMalformed`
        Raised if the value does not have exactly four parts, is not valid
        UTF-8 text, or the expiration is not a plain run of ASCII digits.

    """
    parts = cookie.split('|') if cookie else []
    if len(parts) != 4:
        raise CookieMalformed('Malformed cookie')
    try:
        cookie.encode('utf-8')
    except UnicodeEncodeError as e:
        raise CookieMalformed('Malformed cookie encoding') from e
    username, expiration, token, cookie_hmac = parts
    # Signatures cover the canonical rendering, so only accept that.
    if not (expiration.isascii() and expiration.isdigit()):
        raise CookieMalformed('Malformed cookie expiration')
    return CookieElements(username, int(expiration), token, cookie_hmac)


def pack(username: str, expiration: int, token: str, cookie_hmac: str) -> str:
    """Join the parts of an auth cookie value."""
    return '|'.join([username, str(expiration), token, cookie_hmac])


def derive_key(data: str, scheme: str) -> str:
    """Derive a signing key for ``data`` from the secret of ``scheme``."""
    secret = util.get_secret(scheme)
    return hmac.new(secret.encode('utf-8'), data.encode('utf-8'),
                    hashlib.sha256).hexdigest()


def sign(username: str, pass_frag: str, expiration: int, token: str,
         scheme: str) -> str:
    """
    Compute the HMAC for an auth cookie.

    Parameters
    ----------
    username : str
    pass_frag : str
        Fragment of the stored password hash.
    expiration : int
    token : str
    scheme : str

    Returns
    -------
    str
        Lowercase hex digest.

    """
    key = derive_key(f'{username}|{pass_frag}|{expiration}|{token}', scheme)
    return hmac.new(key.encode('utf-8'),
                    f'{username}|{expiration}|{token}'.encode('utf-8'),
                    hashlib.sha256).hexdigest()


def generate(user_id: int, expiration: int, scheme: str = LOGGED_IN,
             token: Optional[str] = None) -> str:
    """
    Generate an auth cookie value for a user.

    Parameters
    ----------
    user_id : int
    expiration : int
        UNIX time at which the cookie (and a newly created session) expires.
    scheme : str
        ``secure_auth`` or ``logged_in``.
    token : str
        Session token to bind the cookie to. If not given, a new session is
        created.

    Returns
    -------
    str

    Raises
    ------
    :class:`.NoSuchUser`

    """
    user = users.get_user_by_id(user_id)
    if not token:
        token, _ = sessions.get_instance(user.user_id).create(expiration)
    cookie_hmac = sign(user.username, user.pass_frag, expiration, token,
                       scheme)
    logger.debug('Generated %s cookie for user %s', scheme, user.user_id)
    return pack(user.username, expiration, token, cookie_hmac)


def verify(cookie: str, scheme: str = LOGGED_IN) -> int:
    """
    Verify an auth cookie value.

    Parameters
    ----------
    cookie : str
    scheme : str

    Returns
    -------
    int
        The ID of the authenticated user.

    Raises
    ------
    :class:`.CookieMalformed`
    :class:`.CookieExpired`
    :class:`.CookieSignatureMismatch`
        Raised if the signature does not match, or the user does not exist.
    :class:`.SessionRevokedOrUnknown`

    """
    elements = unpack(cookie)
    if elements.expiration < util.now():
        raise CookieExpired('Cookie has expired')
    try:
        user = users.get_user_by_username(elements.username)
    except NoSuchUser as e:
        raise CookieSignatureMismatch('Unknown user in cookie') from e

    expected = sign(user.username, user.pass_frag, elements.expiration,
                    elements.token, scheme)
    if not hmac.compare_digest(expected.encode('utf-8'),
                               elements.hmac.encode('utf-8')):
        raise CookieSignatureMismatch('Invalid cookie; forged?')

    if not sessions.get_instance(user.user_id).verify(elements.token):
        raise SessionRevokedOrUnknown('Session is no longer valid')
    return user.user_id


def validate(cookie: Optional[str], scheme: str = LOGGED_IN) -> Optional[int]:
    """
    Validate an auth cookie value, returning the user ID or ``None``.

    The reason for a rejection is logged, but is not available to the caller.
    """
    if not cookie:
        return None
    try:
        return verify(cookie, scheme)
    except InvalidCookie as e:
        logger.info('Rejected %s cookie (%s): %s', scheme, e.kind.value, e)
    return None


def parse_token(cookie: Optional[str]) -> Optional[str]:
    """Extract the session token from a cookie value, without verifying it."""
    if not cookie:
        return None
    try:
        return unpack(cookie).token
    except CookieMalformed:
        return None
