"""Defines user, session and authorization concepts."""

from typing import Any, Optional, NamedTuple, Dict, TYPE_CHECKING
from datetime import datetime
from enum import Enum

from pytz import UTC

if TYPE_CHECKING:
    from .capabilities import UserCapabilities  # noqa: F401


class ErrorKind(str, Enum):
    """Kinds of authentication/authorization failure."""

    UNKNOWN = 'Unknown'
    INVALID_CREDENTIALS_IDENTITY = 'InvalidCredentialsIdentity'
    EMPTY_PASSWORD = 'EmptyPassword'
    INCORRECT_PASSWORD = 'IncorrectPassword'
    COOKIE_MALFORMED = 'CookieMalformed'
    COOKIE_EXPIRED = 'CookieExpired'
    COOKIE_SIGNATURE_MISMATCH = 'CookieSignatureMismatch'
    SESSION_REVOKED_OR_UNKNOWN = 'SessionRevokedOrUnknown'
    ROLE_NOT_FOUND = 'RoleNotFound'
    CAPABILITY_DENIED = 'CapabilityDenied'


class User(NamedTuple):
    """Represents a user account."""

    user_id: int
    """Unique, stable identifier for the user."""

    username: str
    """Login name. Uniqueness is enforced by the store."""

    email: str = ''
    """The user's primary e-mail address."""

    password_hash: str = ''
    """Opaque stored password hash."""

    nicename: str = ''
    """URL-friendly version of the username."""

    display_name: str = ''
    """Name shown to other users."""

    registered: Optional[datetime] = None
    """When the account was created."""

    @property
    def pass_frag(self) -> str:
        """Fragment of the password hash that is mixed into cookie keys."""
        return self.password_hash[8:12]


class Role(NamedTuple):
    """A named, reusable bundle of capability grants and denials."""

    key: str
    """Unique role key, e.g. ``editor``."""

    name: str
    """Display label."""

    capabilities: Dict[str, bool] = {}
    """Capability name -> grant (``True``) or explicit deny (``False``)."""

    def has_cap(self, cap: str) -> bool:
        """Whether this role grants ``cap``; absent means not granted."""
        return bool(self.capabilities.get(cap, False))


class Session(NamedTuple):
    """A server-side record of a live login for a user."""

    expiration: int
    """UNIX time after which the session is no longer valid."""

    login: int
    """UNIX time when the session was created."""

    ip: Optional[str] = None
    """Client address when the session was created."""

    ua: Optional[str] = None
    """Client identifier (user agent) when the session was created."""

    @property
    def expires_at(self) -> datetime:
        """The expiration as an aware :class:`datetime`."""
        return datetime.fromtimestamp(self.expiration, tz=UTC)

    @property
    def started_at(self) -> datetime:
        """The login time as an aware :class:`datetime`."""
        return datetime.fromtimestamp(self.login, tz=UTC)


class AuthCookies(NamedTuple):
    """Cookie values issued for one login."""

    secure_auth: str
    """Value for the ``secure_auth`` cookie."""

    logged_in: str
    """Value for the ``logged_in`` cookie."""

    expiration: int
    """UNIX time embedded in (and signed into) both values."""

    expire: int
    """UNIX time until which the browser should keep sending the cookies."""

    token: str
    """The session token shared by both values."""


class AuthFailure(NamedTuple):
    """A recoverable authentication failure returned to callers."""

    kind: ErrorKind
    message: str = ''


class SignIn(NamedTuple):
    """Outcome of a credential sign-in."""

    user: Optional[User] = None
    cookies: Optional[AuthCookies] = None
    error: Optional[AuthFailure] = None

    @property
    def succeeded(self) -> bool:
        """Whether the sign-in produced an authenticated user."""
        return self.error is None and self.user is not None


class AuthContext(NamedTuple):
    """
    Authentication state for a single request.

    Built once per request and attached to it; never shared between requests.
    """

    user: Optional[User] = None
    capabilities: Optional['UserCapabilities'] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        """Whether a user was resolved for this request."""
        return self.user is not None

    def can(self, capability: Any, *args: Any) -> bool:
        """Check whether the current user has ``capability``."""
        if self.capabilities is None:
            return False
        return self.capabilities.has_cap(capability, *args)


def to_dict(obj: tuple) -> dict:
    """
    Generate a dict representation of a NamedTuple instance.

    Child NamedTuples are converted recursively, datetimes are rendered as
    ISO-8601 and enums by value, so that the result is JSON-serializable.
    """
    if not hasattr(obj, '_asdict'):  # NamedTuple-generated classes have this.
        return {}
    data = obj._asdict()  # type: ignore

    def _cast(value: Any) -> Any:
        if hasattr(value, '_asdict'):
            value = to_dict(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = [_cast(o) for o in value]
        return value

    return {key: _cast(value) for key, value in data.items()}
