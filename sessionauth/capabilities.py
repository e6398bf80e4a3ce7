"""
Roles and capabilities.

A capability is a named boolean permission, e.g. ``edit_posts``. A role is a
named bundle of capability grants and denials, e.g. ``editor``. Role
definitions are site-wide and live in site metadata under
``<prefix>user_roles``.

Each user has a raw capability map in user metadata under
``<prefix>capabilities``. Keys of that map that name a defined role are the
user's roles; every other key is an individual grant or denial. The user's
effective capabilities are computed as follows:

1. Start from an empty map.
2. For each role, in the order it was assigned, merge in the role's
   capabilities (later roles win on collisions).
3. Overlay the raw map itself (individual entries always win).
4. Set ``exist`` to ``True`` and drop ``do_not_allow``.

Authorization checks go through :meth:`UserCapabilities.has_cap`, which first
maps the requested capability to the primitive capabilities it requires
(see ``map_meta_cap``) and then requires all of them.
"""

import re
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from . import domain, util, users
from .meta import MetadataStore, SITE, USER, store as default_store
from .exceptions import RoleNotFound, CapabilityDenied

logger = logging.getLogger(__name__)

EXIST = 'exist'
DO_NOT_ALLOW = 'do_not_allow'

LEVEL_PATTERN = re.compile(r'^level_(10|[0-9])$', re.IGNORECASE)

MetaCapMapper = Callable[..., Sequence[str]]
SuperAdminCheck = Callable[[int], bool]


def map_meta_cap(capability: str, user_id: int, *args: Any) -> List[str]:
    """
    Map a capability to the primitive capabilities it requires.

    Default mapping: every capability is primitive. Host applications that
    use meta capabilities (e.g. ``edit_post`` for a given post ID) supply
    their own mapper.
    """
    return [capability]


def is_super_admin(user_id: int) -> bool:
    """
    Default super admin check.

    Users whose usernames are listed (comma-delimited) in ``AUTH_SUPER_ADMINS``
    are super admins.
    """
    admins = util.get_config_value('AUTH_SUPER_ADMINS') or ''
    names = {name.strip() for name in admins.split(',') if name.strip()}
    if not names:
        return False
    user = users.get_user_by('id', user_id)
    return user is not None and user.username in names


def level_reduction(current: int, capability: str) -> int:
    """Reduce step for computing the numeric user level."""
    match = LEVEL_PATTERN.match(capability)
    if match:
        return max(current, int(match.group(1)))
    return current


def translate_level_to_cap(level: int) -> str:
    """Translate a numeric user level to its capability name."""
    return f'level_{level}'


class Roles(object):
    """
    Registry of role definitions.

    The definitions are loaded when the registry is created; call
    :meth:`reload` to pick up changes made elsewhere.
    """

    def __init__(self, meta: MetadataStore = default_store) -> None:
        self._meta = meta
        self.role_key = f'{util.get_db_prefix()}user_roles'
        self.roles: Dict[str, Dict[str, Any]] = {}
        self.role_objects: Dict[str, domain.Role] = {}
        self.reload()

    def reload(self) -> None:
        """Load role definitions from the metadata store."""
        data = self._meta.get(SITE, 0, self.role_key, {})
        if not isinstance(data, dict):
            logger.warning('Role definitions are corrupt; ignoring them')
            data = {}
        self.roles = data
        self.role_objects = {}
        for key, role in self.roles.items():
            try:
                self.role_objects[key] = domain.Role(
                    key=key,
                    name=role['name'],
                    capabilities=dict(role.get('capabilities') or {})
                )
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning('Role %s is corrupt; ignoring it', key)

    def _save(self) -> None:
        self._meta.set(SITE, 0, self.role_key, self.roles)
        self.reload()

    def add_role(self, key: str, name: str,
                 capabilities: Optional[Dict[str, bool]] = None) \
            -> Optional[domain.Role]:
        """
        Add a role.

        Returns ``None`` (and changes nothing) if ``key`` is empty or the role
        already exists.
        """
        if not key or key in self.roles:
            return None
        self.roles[key] = {'name': name,
                           'capabilities': dict(capabilities or {})}
        self._save()
        logger.debug('Added role %s', key)
        return self.role_objects[key]

    def remove_role(self, key: str) -> None:
        """Remove a role definition; users keep the (now inert) key."""
        if key not in self.roles:
            raise RoleNotFound(f'No such role: {key}')
        del self.roles[key]
        self._save()
        logger.debug('Removed role %s', key)

    def add_cap(self, key: str, capability: str, grant: bool = True) -> None:
        """Add (or deny, with ``grant=False``) a capability on a role."""
        if key not in self.roles:
            raise RoleNotFound(f'No such role: {key}')
        self.roles[key].setdefault('capabilities', {})[capability] = grant
        self._save()

    def remove_cap(self, key: str, capability: str) -> None:
        """Remove a capability entry from a role."""
        if key not in self.roles:
            raise RoleNotFound(f'No such role: {key}')
        self.roles[key].get('capabilities', {}).pop(capability, None)
        self._save()

    def get_role(self, key: str) -> Optional[domain.Role]:
        """Get a role by key, or ``None``."""
        return self.role_objects.get(key)

    def get_names(self) -> Dict[str, str]:
        """Map role keys to display names."""
        return {key: role.name for key, role in self.role_objects.items()}

    def is_role(self, key: str) -> bool:
        """Whether ``key`` names a defined role."""
        return key in self.role_objects


class UserCapabilities(object):
    """
    Roles and capabilities of one user.

    Parameters
    ----------
    user_id : int
    roles : :class:`Roles`
        Role definitions. Loaded from the store if not given.
    map_meta_cap : callable
        ``(capability, user_id, *args) -> list of str``.
    is_super_admin : callable
        ``(user_id) -> bool``.
    meta : :class:`.MetadataStore`

    """

    def __init__(self, user_id: int, roles: Optional[Roles] = None,
                 map_meta_cap: MetaCapMapper = map_meta_cap,
                 is_super_admin: SuperAdminCheck = is_super_admin,
                 meta: MetadataStore = default_store) -> None:
        self.user_id = user_id
        self._meta = meta
        self._roles = roles if roles is not None else Roles(meta)
        self._map_meta_cap = map_meta_cap
        self._is_super_admin = is_super_admin
        prefix = util.get_db_prefix()
        self.cap_key = f'{prefix}capabilities'
        self.level_key = f'{prefix}user_level'
        self.caps: Dict[str, bool] = self._get_caps_data()
        self.roles: List[str] = []
        self.allcaps: Dict[str, bool] = {}
        self.level = 0
        self.get_role_caps()

    def _get_caps_data(self) -> Dict[str, bool]:
        caps = self._meta.get(USER, self.user_id, self.cap_key, {})
        if not isinstance(caps, dict):
            logger.warning('Capabilities of user %s are corrupt; ignoring',
                           self.user_id)
            return {}
        return caps

    def get_role_caps(self) -> Dict[str, bool]:
        """Recompute the user's roles and effective capabilities."""
        self.roles = [key for key in self.caps if self._roles.is_role(key)]
        allcaps: Dict[str, bool] = {}
        for key in self.roles:
            role = self._roles.get_role(key)
            if role is not None:
                allcaps.update(role.capabilities)
        allcaps.update(self.caps)
        allcaps[EXIST] = True
        allcaps.pop(DO_NOT_ALLOW, None)
        self.allcaps = allcaps
        self.level = self._compute_level()
        return self.allcaps

    def _compute_level(self) -> int:
        level = 0
        for capability in self.allcaps:
            level = level_reduction(level, capability)
        return level

    def _save(self) -> None:
        self._meta.set(USER, self.user_id, self.cap_key, self.caps)
        self.get_role_caps()
        self._meta.set(USER, self.user_id, self.level_key, self.level)

    def add_role(self, role: str) -> None:
        """Assign a role to the user."""
        if not role:
            return
        self.caps[role] = True
        self._save()
        logger.debug('Added role %s to user %s', role, self.user_id)

    def remove_role(self, role: str) -> None:
        """Remove a role from the user; ignored if the user lacks it."""
        if role not in self.roles:
            return
        del self.caps[role]
        self._save()
        logger.debug('Removed role %s from user %s', role, self.user_id)

    def set_role(self, role: Optional[str]) -> None:
        """
        Make ``role`` the user's only role.

        Passing an empty role removes all roles. Setting the user's single
        current role again changes nothing.
        """
        if len(self.roles) == 1 and role == self.roles[0]:
            return
        for old_role in self.roles:
            self.caps.pop(old_role, None)
        if role:
            self.caps[role] = True
        self._save()
        logger.debug('Set role of user %s to %s', self.user_id, role)

    def add_cap(self, capability: str, grant: bool = True) -> None:
        """Grant (or, with ``grant=False``, deny) a capability to the user."""
        self.caps[capability] = grant
        self._save()

    def remove_cap(self, capability: str) -> None:
        """Remove an individual capability entry."""
        if capability not in self.caps:
            return
        del self.caps[capability]
        self._save()

    def remove_all_caps(self) -> None:
        """Remove all roles and individual capabilities of the user."""
        self.caps = {}
        self._meta.delete(USER, self.user_id, self.cap_key)
        self._meta.delete(USER, self.user_id, self.level_key)
        self.get_role_caps()

    def has_cap(self, capability: Union[str, int], *args: Any) -> bool:
        """
        Whether the user has ``capability``.

        Parameters
        ----------
        capability : str or int
            A capability name; an int, or a string of decimal digits, is
            treated as a user level. Booleans are not levels.
        *args
            Context for meta capabilities, e.g. an object ID.

        Returns
        -------
        bool

        """
        if isinstance(capability, bool):
            return False
        if isinstance(capability, int):
            capability = translate_level_to_cap(capability)
        elif capability.isascii() and capability.isdigit():
            capability = translate_level_to_cap(int(capability))
        required = list(self._map_meta_cap(capability, self.user_id, *args))

        # Super admins have all capabilities, unless specifically denied.
        if self._is_super_admin(self.user_id):
            return DO_NOT_ALLOW not in required

        for primitive in required:
            if not self.allcaps.get(primitive):
                return False
        return True

    def require(self, capability: Union[str, int], *args: Any) -> None:
        """Raise :class:`.CapabilityDenied` unless the user has it."""
        if not self.has_cap(capability, *args):
            raise CapabilityDenied(f'User {self.user_id} lacks {capability}')


def effective_capabilities(user_id: int, roles: Optional[Roles] = None,
                           meta: MetadataStore = default_store) \
        -> Dict[str, bool]:
    """Get the effective capability map of a user."""
    return dict(UserCapabilities(user_id, roles=roles, meta=meta).allcaps)
