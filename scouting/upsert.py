"""
Natural-key upserts for crowd-sourced records.

A natural key identifies one observation slot (e.g. match + team + reporter).
Writing to an existing key replaces the mutable columns of that row in place;
the key columns and the realm/reporter binding are never rewritten. Each row
carries a revision counter that the database bumps inside the same statement,
which is how the caller learns whether its write created the row.
"""
from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Tuple
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from .models import db, Report, Comment, Alliance

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


class UpsertResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"

    @property
    def created(self) -> bool:
        return self is UpsertResult.CREATED


@dataclass(frozen=True)
class NaturalKey:
    model: type
    key_columns: Tuple[str, ...]
    mutable_columns: Tuple[str, ...]

    @property
    def table(self):
        return self.model.__table__

    def key_of(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        missing = [c for c in self.key_columns if c not in values]
        if missing:
            raise ValueError(f"{self.model.__name__} upsert missing key columns: {missing}")
        return {c: values[c] for c in self.key_columns}

    def mutable_of(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {c: values[c] for c in self.mutable_columns if c in values}


REPORT_KEY = NaturalKey(Report, ('match_key', 'team_key', 'reporter_id'), ('auto_name', 'data'))
COMMENT_KEY = NaturalKey(Comment, ('match_key', 'team_key', 'reporter_id'), ('comment',))
ALLIANCE_KEY = NaturalKey(Alliance, ('match_key', 'is_blue'), ('team_keys',))


class UpsertEngine:
    """
    Applies natural-key upserts through the database's own conflict handling.

    No read-then-write happens here for PostgreSQL and SQLite: the insert,
    the conflict check and the update are one statement.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def upsert(self, natural_key: NaturalKey, values: Mapping[str, Any], commit: bool = True) -> UpsertResult:
        natural_key.key_of(values)

        dialect = self.session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            result = self._locked_upsert(natural_key, values)
        else:
            result = self._statement_upsert(insert, natural_key, values)

        if commit:
            self.session.commit()
        return result

    def _statement_upsert(self, insert, natural_key: NaturalKey, values: Mapping[str, Any]) -> UpsertResult:
        table = natural_key.table
        now = datetime.utcnow()

        row = dict(values)
        row['revision'] = 1
        row['updated_at'] = now

        stmt = insert(table).values(**row)
        updates = {c: stmt.excluded[c] for c in natural_key.mutable_columns}
        updates['revision'] = table.c.revision + 1
        updates['updated_at'] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=list(natural_key.key_columns),
            set_=updates
        ).returning(table.c.revision)

        revision = self.session.execute(stmt).scalar_one()
        return UpsertResult.CREATED if revision == 1 else UpsertResult.UPDATED

    def _locked_upsert(self, natural_key: NaturalKey, values: Mapping[str, Any]) -> UpsertResult:
        """Conditional insert/update for backends without ON CONFLICT."""
        model = natural_key.model
        key = natural_key.key_of(values)

        existing = self.session.query(model).filter_by(**key).with_for_update().one_or_none()
        if existing is None:
            try:
                with self.session.begin_nested():
                    self.session.add(model(revision=1, **dict(values)))
                return UpsertResult.CREATED
            except IntegrityError:
                # Lost the insert race; the unique constraint kept one row.
                logger.debug(f"{model.__name__} insert raced on {key}, updating instead")
                existing = self.session.query(model).filter_by(**key).with_for_update().one()

        for column, value in natural_key.mutable_of(values).items():
            setattr(existing, column, value)
        existing.revision = existing.revision + 1
        existing.updated_at = datetime.utcnow()
        self.session.flush()
        return UpsertResult.UPDATED
