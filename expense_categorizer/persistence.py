"""SQL storage for learned-rule envelopes (SQLAlchemy 2.0).

Each named rule set is one row in ``ec_rule_sets`` holding the serialized
:class:`~expense_categorizer.models.RuleEnvelope`. The rules engine only ever
loads and saves whole envelopes, so a single JSON column is all the schema
needs; the table is created on first use.

Usage
-----
store = SqlRuleStore("sqlite+pysqlite:///rules.db")
rules = LearnedRules(store)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from pydantic import ValidationError
from sqlalchemy import JSON, DateTime, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .logging_setup import get_logger
from .models import RuleEnvelope

_logger = get_logger("expense_categorizer.persistence")


class Base(DeclarativeBase):
    pass


class RuleSetRow(Base):
    __tablename__ = "ec_rule_sets"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    version: Mapped[str] = mapped_column(String(16), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---- Engine / session helpers ----------------------------------------------

_ENGINES: dict[str, Engine] = {}
_SESSION_MAKERS: dict[str, sessionmaker[Session]] = {}


def get_engine(database_url: str) -> Engine:
    """Return the engine for ``database_url``, creating it (and the schema) once."""

    _session_maker(database_url)
    return _ENGINES[database_url]


def _session_maker(database_url: str) -> sessionmaker[Session]:
    maker = _SESSION_MAKERS.get(database_url)
    if maker is None:
        engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(engine)
        maker = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
        _ENGINES[database_url] = engine
        _SESSION_MAKERS[database_url] = maker
    return maker


@contextmanager
def session_scope(database_url: str) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = _session_maker(database_url)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engines() -> None:
    """Close pooled connections for every engine created by this module."""

    for engine in _ENGINES.values():
        engine.dispose()
    _ENGINES.clear()
    _SESSION_MAKERS.clear()


# ---- Store -----------------------------------------------------------------


class SqlRuleStore:
    """``RuleStore`` backed by a SQL table; ``name`` selects the rule set."""

    def __init__(self, database_url: str, *, name: str = "default") -> None:
        self.database_url = database_url
        self.name = name

    def load(self) -> RuleEnvelope | None:
        with session_scope(self.database_url) as session:
            row = session.get(RuleSetRow, self.name)
            if row is None:
                return None
            payload = row.payload
        try:
            return RuleEnvelope.model_validate(payload)
        except ValidationError as e:
            _logger.warning(
                "persistence:invalid_envelope name=%s errors=%d", self.name, e.error_count()
            )
            return None

    def save(self, envelope: RuleEnvelope) -> None:
        payload = envelope.model_dump(mode="json", by_alias=True)
        with session_scope(self.database_url) as session:
            row = session.get(RuleSetRow, self.name)
            if row is None:
                row = RuleSetRow(name=self.name)
                session.add(row)
            row.version = envelope.version
            row.payload = payload
            row.updated_at = datetime.now(UTC)

    def clear(self) -> None:
        with session_scope(self.database_url) as session:
            row = session.get(RuleSetRow, self.name)
            if row is not None:
                session.delete(row)

    def names(self) -> list[str]:
        with session_scope(self.database_url) as session:
            return list(session.scalars(select(RuleSetRow.name).order_by(RuleSetRow.name)))


__all__ = ["Base", "RuleSetRow", "SqlRuleStore", "dispose_engines", "get_engine", "session_scope"]
