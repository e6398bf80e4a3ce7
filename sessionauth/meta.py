"""
Key/value metadata for users and the site.

Values are serialized as JSON. A value that cannot be decoded is logged and
treated as absent, so that a corrupt row never blocks a login.
"""

import json
import logging
from typing import Any, List, Optional

from .models import DBMetadata
from . import util

logger = logging.getLogger(__name__)

USER = 'user'
"""Entity kind for per-user metadata."""

SITE = 'site'
"""Entity kind for site-wide metadata (always entity id ``0``)."""


class MetadataStore(object):
    """Per-entity get/set/delete of JSON-serialized values."""

    def _load(self, kind: str, entity_id: int, key: str) \
            -> Optional[DBMetadata]:
        with util.transaction() as session:
            row: Optional[DBMetadata] = session.query(DBMetadata) \
                .filter(DBMetadata.entity_kind == kind) \
                .filter(DBMetadata.entity_id == entity_id) \
                .filter(DBMetadata.meta_key == key) \
                .first()
        return row

    def exists(self, kind: str, entity_id: int, key: str) -> bool:
        """Whether a value is stored for ``key``."""
        return self._load(kind, entity_id, key) is not None

    def keys(self, kind: str, entity_id: int) -> List[str]:
        """List the keys stored for one entity."""
        with util.transaction() as session:
            rows = session.query(DBMetadata.meta_key) \
                .filter(DBMetadata.entity_kind == kind) \
                .filter(DBMetadata.entity_id == entity_id) \
                .order_by(DBMetadata.meta_id) \
                .all()
        return [row.meta_key for row in rows]

    def get(self, kind: str, entity_id: int, key: str,
            default: Any = None) -> Any:
        """
        Get the value stored for ``key``.

        Parameters
        ----------
        kind : str
            Entity kind, e.g. :const:`USER` or :const:`SITE`.
        entity_id : int
        key : str
        default : Any
            Returned if there is no value, or the value is corrupt.

        Returns
        -------
        Any

        """
        row = self._load(kind, entity_id, key)
        if row is None or row.meta_value is None:
            return default
        try:
            return json.loads(row.meta_value)
        except ValueError as e:
            logger.warning('Corrupt metadata %s/%s/%s: %s',
                           kind, entity_id, key, e)
            return default

    def set(self, kind: str, entity_id: int, key: str, value: Any) -> None:
        """Store ``value`` for ``key``, replacing any existing value."""
        encoded = json.dumps(value)
        with util.transaction() as session:
            row = session.query(DBMetadata) \
                .filter(DBMetadata.entity_kind == kind) \
                .filter(DBMetadata.entity_id == entity_id) \
                .filter(DBMetadata.meta_key == key) \
                .first()
            if row is None:
                row = DBMetadata(entity_kind=kind, entity_id=entity_id,
                                 meta_key=key)
            row.meta_value = encoded
            session.add(row)
            session.commit()

    def delete(self, kind: str, entity_id: int, key: str) -> None:
        """Remove the value for ``key``; absent keys are ignored."""
        with util.transaction() as session:
            session.query(DBMetadata) \
                .filter(DBMetadata.entity_kind == kind) \
                .filter(DBMetadata.entity_id == entity_id) \
                .filter(DBMetadata.meta_key == key) \
                .delete(synchronize_session=False)
            session.commit()

    def delete_all(self, kind: str, key: str) -> int:
        """Remove ``key`` for every entity of ``kind``."""
        with util.transaction() as session:
            count: int = session.query(DBMetadata) \
                .filter(DBMetadata.entity_kind == kind) \
                .filter(DBMetadata.meta_key == key) \
                .delete(synchronize_session=False)
            session.commit()
        return count

    def delete_entity(self, kind: str, entity_id: int) -> None:
        """Remove all metadata for one entity."""
        with util.transaction() as session:
            session.query(DBMetadata) \
                .filter(DBMetadata.entity_kind == kind) \
                .filter(DBMetadata.entity_id == entity_id) \
                .delete(synchronize_session=False)
            session.commit()


store = MetadataStore()
"""Default store, backed by the application database."""
