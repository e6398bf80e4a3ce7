"""Provide methods for working with user accounts."""

import logging
from typing import Any, Dict, Iterator, Optional, Callable
from collections.abc import MutableMapping

from sqlalchemy.exc import IntegrityError

from . import domain, util, passwords
from .meta import MetadataStore, USER, store as default_store
from .models import DBUser, DBSessionToken
from .exceptions import NoSuchUser

logger = logging.getLogger(__name__)

FIELDS = {
    'id': DBUser.user_id,
    'slug': DBUser.user_nicename,
    'email': DBUser.user_email,
    'login': DBUser.user_login,
}
"""Lookup fields accepted by :func:`get_user_by`."""


def _to_domain(db_user: DBUser) -> domain.User:
    return domain.User(
        user_id=int(db_user.user_id),
        username=db_user.user_login,
        email=db_user.user_email,
        password_hash=db_user.user_pass,
        nicename=db_user.user_nicename,
        display_name=db_user.display_name,
        registered=util.from_epoch(db_user.user_registered)
    )


def get_user_by(field: str, value: Any) -> Optional[domain.User]:
    """
    Retrieve a user by ``id``, ``slug``, ``email`` or ``login``.

    Parameters
    ----------
    field : str
    value : Any

    Returns
    -------
    :class:`.domain.User` or None
        ``None`` if no user matches, or ``field`` is not supported.

    """
    column = FIELDS.get(field)
    if column is None:
        logger.debug('Unsupported user lookup field: %s', field)
        return None
    if field == 'id':
        try:
            value = int(value)
        except (TypeError, ValueError):
            return None
        if value <= 0:
            return None
    with util.transaction() as session:
        db_user: Optional[DBUser] = session.query(DBUser) \
            .filter(column == value) \
            .first()
    if db_user is None:
        return None
    return _to_domain(db_user)


def get_user_by_id(user_id: int) -> domain.User:
    """Load a user, raising :class:`.NoSuchUser` if there is none."""
    user = get_user_by('id', user_id)
    if user is None:
        raise NoSuchUser(f'No user with id {user_id}')
    return user


def get_user_by_username(username: str) -> domain.User:
    """Load a user by login name, raising :class:`.NoSuchUser`."""
    user = get_user_by('login', username)
    if user is None:
        raise NoSuchUser('User does not exist')
    return user


def username_exists(username: str) -> bool:
    """Determine whether a user with a particular username already exists."""
    return get_user_by('login', username) is not None


def email_exists(email: str) -> bool:
    """Determine whether a user with a particular address already exists."""
    return get_user_by('email', email) is not None


def create_user(username: str, email: str, password: str,
                display_name: str = '',
                hasher: Callable[[str], str] = passwords.hash_password) \
        -> domain.User:
    """
    Create a new user account.

    Parameters
    ----------
    username : str
    email : str
    password : str
        Plain-text password; hashed with ``hasher`` before storage.
    display_name : str
    hasher : callable
        Produces the stored hash for ``password``.

    Returns
    -------
    :class:`.domain.User`

    Raises
    ------
    ValueError
        Raised if the username is empty, contains ``|``, or is taken.

    """
    if not username or '|' in username:
        raise ValueError('Invalid username')
    db_user = DBUser(
        user_login=username,
        user_pass=hasher(password),
        user_email=email,
        user_nicename=username.lower().replace(' ', '-')[:50],
        display_name=display_name or username,
        user_registered=util.now()
    )
    try:
        with util.transaction() as session:
            session.add(db_user)
            session.commit()
    except IntegrityError as e:
        raise ValueError(f'Username {username} is taken') from e
    logger.debug('Created user %s', db_user.user_id)
    return _to_domain(db_user)


def set_password(user_id: int, password: str,
                 hasher: Callable[[str], str] = passwords.hash_password) \
        -> domain.User:
    """
    Replace a user's password.

    Cookies issued before the change no longer validate, because the cookie
    key is derived from a fragment of the stored hash.
    """
    with util.transaction() as session:
        db_user: Optional[DBUser] = session.query(DBUser) \
            .filter(DBUser.user_id == user_id) \
            .first()
        if db_user is None:
            raise NoSuchUser(f'No user with id {user_id}')
        db_user.user_pass = hasher(password)
        session.add(db_user)
        session.commit()
    return _to_domain(db_user)


def delete_user(user_id: int, meta: MetadataStore = default_store) -> None:
    """Delete a user together with their sessions and metadata."""
    with util.transaction() as session:
        session.query(DBSessionToken) \
            .filter(DBSessionToken.user_id == user_id) \
            .delete(synchronize_session=False)
        deleted = session.query(DBUser) \
            .filter(DBUser.user_id == user_id) \
            .delete(synchronize_session=False)
        session.commit()
    if not deleted:
        raise NoSuchUser(f'No user with id {user_id}')
    meta.delete_entity(USER, user_id)


class UserAttributes(MutableMapping):
    """
    Extra, free-form attributes of a user.

    Values live in the metadata store and are read lazily; a value read once
    is remembered for the life of this object (normally one request).
    """

    def __init__(self, user_id: int,
                 meta: MetadataStore = default_store) -> None:
        self.user_id = user_id
        self._meta = meta
        self._cache: Dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        if key not in self._cache:
            missing = object()
            value = self._meta.get(USER, self.user_id, key, missing)
            if value is missing:
                raise KeyError(key)
            self._cache[key] = value
        return self._cache[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._meta.set(USER, self.user_id, key, value)
        self._cache[key] = value

    def __delitem__(self, key: str) -> None:
        if key not in self:
            raise KeyError(key)
        self._meta.delete(USER, self.user_id, key)
        self._cache.pop(key, None)

    def __contains__(self, key: object) -> bool:
        if key in self._cache:
            return True
        return isinstance(key, str) \
            and self._meta.exists(USER, self.user_id, key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._meta.keys(USER, self.user_id))

    def __len__(self) -> int:
        return len(self._meta.keys(USER, self.user_id))
