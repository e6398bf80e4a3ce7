"""Database models for users, metadata and session tokens."""

from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, String, \
    Text, UniqueConstraint, text
from sqlalchemy.orm import relationship
from flask_sqlalchemy import SQLAlchemy

db: SQLAlchemy = SQLAlchemy()


class DBUser(db.Model):  # type: ignore
    """
    User accounts.

    +-----------------+--------------+------+-----+---------+----------------+
    | Field           | Type         | Null | Key | Default | Extra          |
    +-----------------+--------------+------+-----+---------+----------------+
    | user_id         | int          | NO   | PRI | NULL    | auto_increment |
    | user_login      | varchar(60)  | NO   | UNI |         |                |
    | user_pass       | varchar(255) | NO   |     |         |                |
    | user_email      | varchar(100) | NO   | MUL |         |                |
    | user_nicename   | varchar(50)  | NO   | MUL |         |                |
    | display_name    | varchar(250) | NO   |     |         |                |
    | user_registered | bigint       | NO   |     | 0       |                |
    +-----------------+--------------+------+-----+---------+----------------+
    """

    __tablename__ = 'users'

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    user_login = Column(String(60), nullable=False, unique=True, index=True)
    user_pass = Column(String(255), nullable=False, server_default=text("''"))
    user_email = Column(String(100), nullable=False, index=True,
                        server_default=text("''"))
    user_nicename = Column(String(50), nullable=False, index=True,
                           server_default=text("''"))
    display_name = Column(String(250), nullable=False,
                          server_default=text("''"))
    user_registered = Column(BigInteger, nullable=False,
                             server_default=text("'0'"))


class DBMetadata(db.Model):  # type: ignore
    """
    Per-entity key/value metadata; values are JSON documents.

    Entities are identified by ``(entity_kind, entity_id)``, e.g.
    ``('user', 42)`` or ``('site', 0)``.
    """

    __tablename__ = 'metadata'
    __table_args__ = (
        UniqueConstraint('entity_kind', 'entity_id', 'meta_key',
                         name='uq_metadata_entity_key'),
    )

    meta_id = Column(Integer, primary_key=True, autoincrement=True)
    entity_kind = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False, server_default=text("'0'"))
    meta_key = Column(String(255), nullable=False, index=True)
    meta_value = Column(Text, nullable=True)


class DBSessionToken(db.Model):  # type: ignore
    """
    Live login sessions, one row per session.

    Rows are keyed by ``(user_id, verifier)`` where ``verifier`` is the
    SHA-256 hex digest of the bearer token. The token itself is never stored.

    +------------+--------------+------+-----+---------+
    | Field      | Type         | Null | Key | Default |
    +------------+--------------+------+-----+---------+
    | user_id    | int          | NO   | PRI | NULL    |
    | verifier   | char(64)     | NO   | PRI | NULL    |
    | expiration | bigint       | NO   | MUL | 0       |
    | login      | bigint       | NO   |     | 0       |
    | ip         | varchar(45)  | YES  |     | NULL    |
    | ua         | varchar(255) | YES  |     | NULL    |
    +------------+--------------+------+-----+---------+
    """

    __tablename__ = 'session_tokens'
    __table_args__ = (
        Index('ix_session_tokens_expiration', 'expiration'),
    )

    user_id = Column(ForeignKey('users.user_id', ondelete='CASCADE'),
                     primary_key=True, autoincrement=False)
    verifier = Column(String(64), primary_key=True)
    expiration = Column(BigInteger, nullable=False, server_default=text("'0'"))
    login = Column(BigInteger, nullable=False, server_default=text("'0'"))
    ip = Column(String(45), nullable=True)
    ua = Column(String(255), nullable=True)

    user = relationship('DBUser')
