"""Filtered queries and bulk operations over the todos table."""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Iterable, Mapping

from .models import (
    PRIMARY_KEY_COLUMNS,
    HookPoint,
    ModelError,
    NotFoundError,
    _QUOTED_TABLE,
    _encode,
    _execute,
    _todos_from_cursor,
)
from .sqlbuild import (
    ident_quote,
    placeholders,
    set_param_names,
    where_clause_repeated,
)


@dataclass(frozen=True)
class Condition:
    """A WHERE fragment with its positional parameters."""

    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Where:
    """Builds conditions on one column."""

    field: str

    def _compare(self, operator: str, value: Any) -> Condition:
        return Condition(f"{self.field} {operator} ?", (_encode(value),))

    def eq(self, value: Any) -> Condition:
        if value is None:
            return self.is_null()
        return self._compare("=", value)

    def neq(self, value: Any) -> Condition:
        if value is None:
            return self.is_not_null()
        return self._compare("!=", value)

    def lt(self, value: Any) -> Condition:
        return self._compare("<", value)

    def lte(self, value: Any) -> Condition:
        return self._compare("<=", value)

    def gt(self, value: Any) -> Condition:
        return self._compare(">", value)

    def gte(self, value: Any) -> Condition:
        return self._compare(">=", value)

    def in_(self, values: Iterable[Any]) -> Condition:
        params = tuple(_encode(v) for v in values)
        return Condition(f"{self.field} IN ({placeholders(len(params))})", params)

    def not_in(self, values: Iterable[Any]) -> Condition:
        params = tuple(_encode(v) for v in values)
        return Condition(f"{self.field} NOT IN ({placeholders(len(params))})", params)

    def like(self, value: Any) -> Condition:
        return Condition(f"{self.field} LIKE ?", (_encode(value),))

    def not_like(self, value: Any) -> Condition:
        return Condition(f"{self.field} NOT LIKE ?", (_encode(value),))

    def is_null(self) -> Condition:
        return Condition(f"{self.field} IS NULL")

    def is_not_null(self) -> Condition:
        return Condition(f"{self.field} IS NOT NULL")


TODO_WHERE = SimpleNamespace(
    id=Where("`todos`.`id`"),
    title=Where("`todos`.`title`"),
    description=Where("`todos`.`description`"),
    status=Where("`todos`.`status`"),
    deadline=Where("`todos`.`deadline`"),
    created_at=Where("`todos`.`created_at`"),
    updated_at=Where("`todos`.`updated_at`"),
    deleted=Where("`todos`.`deleted`"),
)


def _rows_affected(cursor: Any) -> int:
    return cursor.rowcount


class TodoSlice(list):
    """A list of Todo records with bulk operations keyed by primary key."""

    def _key_args(self) -> list[Any]:
        return [_encode(getattr(todo, col)) for todo in self for col in PRIMARY_KEY_COLUMNS]

    def _key_where(self) -> str:
        return where_clause_repeated(PRIMARY_KEY_COLUMNS, len(self))

    def update_all(self, conn: Any, cols: Mapping[str, Any]) -> int:
        """Set the given columns on every row in the slice; return rows affected."""
        if not self:
            return 0
        if not cols:
            raise ModelError("models: update all requires at least one column argument")
        names = list(cols)
        args = [_encode(cols[name]) for name in names] + self._key_args()
        sql = f"UPDATE {_QUOTED_TABLE} SET {set_param_names(names)} WHERE {self._key_where()}"
        try:
            cursor = _execute(conn, sql, args)
        except Exception as exc:
            raise ModelError(f"models: unable to update all in todo slice: {exc}") from exc
        return _rows_affected(cursor)

    def delete_all(self, conn: Any) -> int:
        """Delete every row in the slice; return rows affected."""
        if not self:
            return 0
        for todo in self:
            todo.run_hooks(HookPoint.BEFORE_DELETE, conn)
        sql = f"DELETE FROM {_QUOTED_TABLE} WHERE {self._key_where()}"
        try:
            cursor = _execute(conn, sql, self._key_args())
        except Exception as exc:
            raise ModelError(f"models: unable to delete all from todo slice: {exc}") from exc
        rows_affected = _rows_affected(cursor)
        for todo in self:
            todo.run_hooks(HookPoint.AFTER_DELETE, conn)
        return rows_affected

    def reload_all(self, conn: Any) -> None:
        """Replace the slice's contents with fresh rows fetched by primary key."""
        if not self:
            return
        sql = f"SELECT {_QUOTED_TABLE}.* FROM {_QUOTED_TABLE} WHERE {self._key_where()}"
        try:
            fresh = _todos_from_cursor(_execute(conn, sql, self._key_args()))
        except Exception as exc:
            raise ModelError(f"models: unable to reload all in TodoSlice: {exc}") from exc
        self[:] = fresh


@dataclass(frozen=True)
class TodoQuery:
    """A selection of todo rows narrowed by conditions."""

    conditions: tuple[Condition, ...] = ()

    def _where(self) -> tuple[str, tuple[Any, ...]]:
        if not self.conditions:
            return "", ()
        sql = " WHERE " + " AND ".join(f"({c.sql})" for c in self.conditions)
        params = tuple(p for c in self.conditions for p in c.params)
        return sql, params

    def _select(self, columns: str, limit: int | None = None) -> tuple[str, tuple[Any, ...]]:
        where, params = self._where()
        sql = f"SELECT {columns} FROM {_QUOTED_TABLE}{where}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return sql, params

    def one(self, conn: Any):
        """Return the first matching record; raise NotFoundError if there is none."""
        sql, params = self._select(f"{_QUOTED_TABLE}.*", limit=1)
        try:
            found = _todos_from_cursor(_execute(conn, sql, params))
        except Exception as exc:
            raise ModelError(f"models: failed to execute a one query for todos: {exc}") from exc
        if not found:
            raise NotFoundError()
        todo = found[0]
        todo.run_hooks(HookPoint.AFTER_SELECT, conn)
        return todo

    def all(self, conn: Any) -> TodoSlice:
        """Return every matching record."""
        sql, params = self._select(f"{_QUOTED_TABLE}.*")
        try:
            found = TodoSlice(_todos_from_cursor(_execute(conn, sql, params)))
        except Exception as exc:
            raise ModelError(
                f"models: failed to assign all query results to Todo slice: {exc}"
            ) from exc
        for todo in found:
            todo.run_hooks(HookPoint.AFTER_SELECT, conn)
        return found

    def count(self, conn: Any) -> int:
        """Return the number of matching rows."""
        sql, params = self._select("COUNT(*)")
        try:
            row = _execute(conn, sql, params).fetchone()
        except Exception as exc:
            raise ModelError(f"models: failed to count todos rows: {exc}") from exc
        return int(row[0])

    def exists(self, conn: Any) -> bool:
        """Tell whether any row matches."""
        sql, params = self._select("COUNT(*)", limit=1)
        try:
            row = _execute(conn, sql, params).fetchone()
        except Exception as exc:
            raise ModelError(f"models: failed to check if todos exists: {exc}") from exc
        return int(row[0]) > 0

    def update_all(self, conn: Any, cols: Mapping[str, Any]) -> int:
        """Set the given columns on every matching row; return rows affected."""
        if not cols:
            raise ModelError("models: update all requires at least one column argument")
        names = list(cols)
        where, params = self._where()
        sql = f"UPDATE {_QUOTED_TABLE} SET {set_param_names(names)}{where}"
        args = [_encode(cols[name]) for name in names] + list(params)
        try:
            cursor = _execute(conn, sql, args)
        except Exception as exc:
            raise ModelError(f"models: unable to update all for todos: {exc}") from exc
        return _rows_affected(cursor)

    def delete_all(self, conn: Any) -> int:
        """Delete every matching row; return rows affected."""
        where, params = self._where()
        sql = f"DELETE FROM {_QUOTED_TABLE}{where}"
        try:
            cursor = _execute(conn, sql, params)
        except Exception as exc:
            raise ModelError(f"models: unable to delete all from todos: {exc}") from exc
        return _rows_affected(cursor)


def todos(*args: Condition) -> TodoQuery:
    """Start a query over the todos table narrowed by the given conditions."""
    for arg in args:
        if not isinstance(arg, Condition):
            raise TypeError(f"expected a Condition, got {type(arg).__name__}")
    return TodoQuery(tuple(args))


__all__ = [
    "Condition",
    "Where",
    "TodoQuery",
    "TodoSlice",
    "TODO_WHERE",
    "todos",
    "ident_quote",
]