"""Testing helpers."""

import json
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Tuple

from flask import Flask
from sqlalchemy.orm.session import Session

from .. import util
from ..meta import MetadataStore

SECRETS = {
    'AUTH_KEY_SECURE_AUTH': 'secure-auth-key',
    'AUTH_SALT_SECURE_AUTH': 'secure-auth-salt',
    'AUTH_KEY_LOGGED_IN': 'logged-in-key',
    'AUTH_SALT_LOGGED_IN': 'logged-in-salt',
}


def create_app(database_url: str = 'sqlite:///:memory:',
               **config: Any) -> Flask:
    """Create a bare application configured for testing."""
    app = Flask('foo')
    app.config['AUTH_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config.update(SECRETS)
    app.config.update(config)
    return app


@contextmanager
def temporary_db(database_url: str = 'sqlite:///:memory:',
                 create: bool = True, drop: bool = True,
                 **config: Any) -> Generator[Session, None, None]:
    """Provide an in-memory sqlite database for testing purposes."""
    app = create_app(database_url, **config)
    with app.app_context():
        util.init_app(app)
        if create:
            util.create_all()
        try:
            yield util.current_session()
        finally:
            util.current_session().rollback()
            if drop:
                util.drop_all()


class InMemoryMetadata(MetadataStore):
    """A :class:`.MetadataStore` backed by a dict, for tests without a db."""

    def __init__(self) -> None:
        self.data: Dict[Tuple[str, int, str], Any] = {}

    def exists(self, kind: str, entity_id: int, key: str) -> bool:
        return (kind, entity_id, key) in self.data

    def keys(self, kind: str, entity_id: int) -> List[str]:
        return [k for (kd, eid, k) in self.data
                if kd == kind and eid == entity_id]

    def get(self, kind: str, entity_id: int, key: str,
            default: Any = None) -> Any:
        if (kind, entity_id, key) not in self.data:
            return default
        return json.loads(self.data[(kind, entity_id, key)])

    def set(self, kind: str, entity_id: int, key: str, value: Any) -> None:
        self.data[(kind, entity_id, key)] = json.dumps(value)

    def delete(self, kind: str, entity_id: int, key: str) -> None:
        self.data.pop((kind, entity_id, key), None)
