"""
Session tokens for authenticated users.

A session token is a long random string carried in the auth cookies. It ties
the cookies to a server-side session record, so that logging out (or an
administrator revoking sessions) invalidates cookies that would otherwise
still carry a valid signature and expiration.

Only a SHA-256 digest of the token (the "verifier") is stored. Each session
is its own row keyed by ``(user_id, verifier)``, so concurrent logins and
logouts for the same user never overwrite one another's changes.
"""

import hashlib
import logging
import secrets
from typing import Optional, List, Tuple

from flask import has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from . import domain, util
from .models import DBSessionToken
from .exceptions import SessionCreationFailed, SessionDeletionFailed, \
    Unavailable

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
"""Entropy of a session token; 32 bytes encodes to 43 URL-safe characters."""

IP_LENGTH: int = DBSessionToken.__table__.c.ip.type.length
UA_LENGTH: int = DBSessionToken.__table__.c.ua.type.length


def hash_token(token: str) -> str:
    """Hash a session token for storage (the token's verifier)."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def generate_token() -> str:
    """Generate a new random, URL-safe session token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def _is_still_valid(db_session: DBSessionToken) -> bool:
    return bool(db_session.expiration > util.now())


def _to_domain(db_session: DBSessionToken) -> domain.Session:
    return domain.Session(expiration=int(db_session.expiration),
                          login=int(db_session.login),
                          ip=db_session.ip,
                          ua=db_session.ua)


def _request_metadata() -> Tuple[Optional[str], Optional[str]]:
    """Best-effort client address and user agent of the current request."""
    if not has_request_context():
        return None, None
    ua = request.user_agent.string if request.user_agent else None
    return request.remote_addr or None, ua or None


class SessionTokens(object):
    """Manages the session tokens of a single user."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id

    def _load(self, verifier: str) -> Optional[DBSessionToken]:
        with util.transaction() as session:
            db_session: Optional[DBSessionToken] = \
                session.query(DBSessionToken) \
                .filter(DBSessionToken.user_id == self.user_id) \
                .filter(DBSessionToken.verifier == verifier) \
                .first()
        return db_session

    def create(self, expiration: int, ip: Optional[str] = None,
               ua: Optional[str] = None) -> Tuple[str, domain.Session]:
        """
        Generate a session token and store a session for it.

        Parameters
        ----------
        expiration : int
            UNIX time at which the session expires.
        ip : str
            Client address. Taken from the current request if not given.
        ua : str
            Client user agent. Taken from the current request if not given.

        Returns
        -------
        str
            The session token. This is the only time it is available.
        :class:`.domain.Session`

        Raises
        ------
        :class:`.SessionCreationFailed`

        """
        if ip is None and ua is None:
            ip, ua = _request_metadata()
        # Truncated to the column widths.
        ip = ip[:IP_LENGTH] if ip else None
        ua = ua[:UA_LENGTH] if ua else None
        token = generate_token()
        session = domain.Session(expiration=int(expiration), login=util.now(),
                                 ip=ip, ua=ua)
        try:
            self.update(token, session)
        except Unavailable:
            raise
        except SQLAlchemyError as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        logger.debug('Created session for user %s', self.user_id)
        return token, session

    def get(self, token: str) -> Optional[domain.Session]:
        """Get the live session for ``token``, or ``None``."""
        db_session = self._load(hash_token(token))
        if db_session is None or not _is_still_valid(db_session):
            return None
        return _to_domain(db_session)

    def verify(self, token: str) -> bool:
        """Whether ``token`` refers to a live, unexpired session."""
        return self.get(token) is not None

    def update(self, token: str, session: domain.Session) -> None:
        """Store ``session`` for ``token``, replacing any existing data."""
        with util.transaction() as db:
            db.merge(DBSessionToken(
                user_id=self.user_id,
                verifier=hash_token(token),
                expiration=int(session.expiration),
                login=int(session.login),
                ip=session.ip,
                ua=session.ua
            ))
            db.commit()

    def destroy(self, token: str) -> None:
        """Destroy the session for ``token``."""
        verifier = hash_token(token)
        try:
            with util.transaction() as session:
                session.query(DBSessionToken) \
                    .filter(DBSessionToken.user_id == self.user_id) \
                    .filter(DBSessionToken.verifier == verifier) \
                    .delete(synchronize_session=False)
                session.commit()
        except SQLAlchemyError as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e
        logger.debug('Destroyed session %s... for user %s',
                     verifier[:8], self.user_id)

    def destroy_others(self, token_to_keep: str) -> None:
        """
        Destroy all sessions for this user except the one for ``token_to_keep``.

        If there is no live session for ``token_to_keep``, every session of
        the user is destroyed.
        """
        verifier = hash_token(token_to_keep)
        with util.transaction() as session:
            query = session.query(DBSessionToken) \
                .filter(DBSessionToken.user_id == self.user_id)
            keep = query.filter(DBSessionToken.verifier == verifier).first()
            if keep is not None and _is_still_valid(keep):
                query = query.filter(DBSessionToken.verifier != verifier)
            else:
                logger.info('Session to keep not found for user %s;'
                            ' destroying all sessions', self.user_id)
            query.delete(synchronize_session=False)
            session.commit()

    def destroy_all(self) -> None:
        """Destroy all sessions for this user."""
        with util.transaction() as session:
            count = session.query(DBSessionToken) \
                .filter(DBSessionToken.user_id == self.user_id) \
                .delete(synchronize_session=False)
            session.commit()
        logger.debug('Destroyed %s sessions for user %s', count, self.user_id)

    def get_all(self) -> List[domain.Session]:
        """Get all live sessions of this user, oldest first."""
        with util.transaction() as session:
            rows = session.query(DBSessionToken) \
                .filter(DBSessionToken.user_id == self.user_id) \
                .filter(DBSessionToken.expiration > util.now()) \
                .order_by(DBSessionToken.login) \
                .all()
        return [_to_domain(row) for row in rows]


def get_instance(user_id: int) -> SessionTokens:
    """Get a session token manager for a user."""
    return SessionTokens(user_id)


def destroy_all_for_all_users() -> int:
    """Destroy every session of every user. Returns the number destroyed."""
    with util.transaction() as session:
        count: int = session.query(DBSessionToken) \
            .delete(synchronize_session=False)
        session.commit()
    logger.warning('Destroyed all sessions for all users (%s)', count)
    return count


def purge_expired() -> int:
    """Delete expired session rows. Returns the number deleted."""
    with util.transaction() as session:
        count: int = session.query(DBSessionToken) \
            .filter(DBSessionToken.expiration <= util.now()) \
            .delete(synchronize_session=False)
        session.commit()
    logger.debug('Purged %s expired sessions', count)
    return count
