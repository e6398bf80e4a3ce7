"""Exceptions."""

from .domain import ErrorKind


class AuthError(RuntimeError):
    """Base class for errors raised by this package."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class ConfigurationError(AuthError):
    """Required configuration (e.g. signing secrets) is missing."""


class Unavailable(AuthError):
    """The backing store is temporarily unavailable."""


class NoSuchUser(AuthError):
    """User does not exist."""

    kind = ErrorKind.INVALID_CREDENTIALS_IDENTITY


class AuthenticationFailed(AuthError):
    """Failed to authenticate user with provided credentials."""


class InvalidCredentialsIdentity(AuthenticationFailed):
    """No account matches the username or e-mail address provided."""

    kind = ErrorKind.INVALID_CREDENTIALS_IDENTITY


class UnknownUsername(InvalidCredentialsIdentity):
    """No account has the username provided."""


class UnknownEmail(InvalidCredentialsIdentity):
    """No account has the e-mail address provided."""


class EmptyPassword(AuthenticationFailed):
    """The password field was empty."""

    kind = ErrorKind.EMPTY_PASSWORD


class IncorrectPassword(AuthenticationFailed):
    """Password is not correct."""

    kind = ErrorKind.INCORRECT_PASSWORD


class InvalidCookie(AuthError):
    """Auth cookie is not valid."""


class CookieMalformed(InvalidCookie):
    """Auth cookie could not be parsed."""

    kind = ErrorKind.COOKIE_MALFORMED


class CookieExpired(InvalidCookie):
    """Auth cookie expiration has passed."""

    kind = ErrorKind.COOKIE_EXPIRED


class CookieSignatureMismatch(InvalidCookie):
    """Auth cookie HMAC does not match; forged, or the password changed."""

    kind = ErrorKind.COOKIE_SIGNATURE_MISMATCH


class SessionRevokedOrUnknown(InvalidCookie):
    """The session referenced by the cookie is gone or expired."""

    kind = ErrorKind.SESSION_REVOKED_OR_UNKNOWN


class SessionCreationFailed(AuthError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(AuthError):
    """Failed to delete a session in the session store."""


class RoleNotFound(AuthError):
    """No role is defined with the requested key."""

    kind = ErrorKind.ROLE_NOT_FOUND


class CapabilityDenied(AuthError):
    """The user lacks a required capability."""

    kind = ErrorKind.CAPABILITY_DENIED
