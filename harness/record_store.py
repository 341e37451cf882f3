"""
Query executor used by the benchmark.

The benchmark only needs five named operations over an abstract record
store: count, filtered/sorted/paginated find, group-by with counts,
single insert, and per-table row counts. :class:`RecordStore` is that
contract; :class:`SqlAlchemyRecordStore` fulfils it for any mapping of
entity names to SQLAlchemy models.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session


@dataclass(frozen=True)
class Between:
    """Inclusive range filter."""

    start: Any
    end: Any


@dataclass(frozen=True)
class Contains:
    """Substring filter; case-insensitive unless ``case_sensitive`` is set."""

    text: str
    case_sensitive: bool = False


class RecordStore(Protocol):
    """Named operations the query catalog probes."""

    def count(self, entity: str, where: Mapping[str, Any] | None = None) -> int: ...

    def find(
        self,
        entity: str,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Any]: ...

    def group_by(
        self,
        entity: str,
        fields: Sequence[str],
        where: Mapping[str, Any] | None = None,
        order_by_count: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def insert(self, entity: str, values: Mapping[str, Any]) -> Any: ...

    def table_counts(self) -> dict[str, int]: ...


class SqlAlchemyRecordStore:
    """
    :class:`RecordStore` over SQLAlchemy ORM models.

    Args:
        session: An ORM session (``db.session`` inside a Flask app
            context works too).
        models: Entity name to mapped class, e.g. ``{"calls": Call}``.
    """

    def __init__(self, session: Session, models: Mapping[str, type]):
        self.session = session
        self.models = dict(models)

    def _model(self, entity: str) -> type:
        try:
            return self.models[entity]
        except KeyError:
            raise ValueError(f"Unknown entity '{entity}'") from None

    @staticmethod
    def _column(model: type, field_name: str):
        column = getattr(model, field_name, None)
        if column is None or not hasattr(column, "desc"):
            raise ValueError(f"Unknown field '{field_name}' on {model.__name__}")
        return column

    def _apply_where(self, stmt, model: type, where: Mapping[str, Any] | None):
        for field_name, condition in (where or {}).items():
            column = self._column(model, field_name)
            if isinstance(condition, Between):
                stmt = stmt.where(column.between(condition.start, condition.end))
            elif isinstance(condition, Contains):
                if condition.case_sensitive:
                    stmt = stmt.where(column.contains(condition.text))
                else:
                    stmt = stmt.where(column.ilike(f"%{condition.text}%"))
            else:
                stmt = stmt.where(column == condition)
        return stmt

    def count(self, entity: str, where: Mapping[str, Any] | None = None) -> int:
        model = self._model(entity)
        stmt = self._apply_where(select(func.count()).select_from(model), model, where)
        return int(self.session.scalar(stmt) or 0)

    def find(
        self,
        entity: str,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Any]:
        model = self._model(entity)
        stmt = self._apply_where(select(model), model, where)
        if order_by:
            column = self._column(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        return list(self.session.scalars(stmt).all())

    def group_by(
        self,
        entity: str,
        fields: Sequence[str],
        where: Mapping[str, Any] | None = None,
        order_by_count: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        if not fields:
            raise ValueError("group_by needs at least one field")
        model = self._model(entity)
        columns = [self._column(model, field_name) for field_name in fields]
        count_column = func.count().label("count")
        stmt = self._apply_where(select(*columns, count_column), model, where).group_by(*columns)
        if order_by_count:
            stmt = stmt.order_by(count_column.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            {**dict(zip(fields, row[:-1])), "count": row[-1]}
            for row in self.session.execute(stmt)
        ]

    def insert(self, entity: str, values: Mapping[str, Any]) -> Any:
        model = self._model(entity)
        record = model(**values)
        self.session.add(record)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return getattr(record, "id", None)

    def table_counts(self) -> dict[str, int]:
        return {entity: self.count(entity) for entity in self.models}
