"""The todos table model: records, lifecycle hooks and single-row persistence."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

from .sqlbuild import (
    TODOS_TABLE,
    Columns,
    build_upsert_query,
    ident_quote,
    make_cache_key,
    placeholders,
    set_complement,
    set_intersect,
    set_param_names,
    where_clause,
)

logger = logging.getLogger(__name__)

ALL_COLUMNS = (
    "id",
    "title",
    "description",
    "status",
    "deadline",
    "created_at",
    "updated_at",
    "deleted",
)
COLUMNS_WITHOUT_DEFAULT = ("title", "description", "deadline")
COLUMNS_WITH_DEFAULT = ("id", "status", "created_at", "updated_at", "deleted")
PRIMARY_KEY_COLUMNS = ("id",)
UNIQUE_COLUMNS = ("id",)

_TIMESTAMP_COLUMNS = frozenset({"deadline", "created_at", "updated_at"})
_QUOTED_TABLE = ident_quote(TODOS_TABLE)
_NO_ROWS = "sql: no rows in result set"

_CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {_QUOTED_TABLE} (
    `id` INTEGER PRIMARY KEY,
    `title` VARCHAR(255) NOT NULL,
    `description` TEXT,
    `status` TINYINT NOT NULL DEFAULT 0,
    `deadline` TIMESTAMP,
    `created_at` TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    `updated_at` TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    `deleted` BOOLEAN NOT NULL DEFAULT 0
)
"""


class ModelError(Exception):
    """Raised when a todos statement fails."""


class SyncError(ModelError):
    """Raised when an inserted row cannot be read back to fill in defaults."""

    def __init__(self, message: str = "models: failed to synchronize data after insert"):
        super().__init__(message)


class NotFoundError(ModelError, LookupError):
    """Raised when a requested todo row does not exist."""

    def __init__(self, message: str = _NO_ROWS):
        super().__init__(message)


class HookPoint(Enum):
    """Points in a record's lifecycle at which hooks run."""

    AFTER_SELECT = "after_select"
    BEFORE_INSERT = "before_insert"
    AFTER_INSERT = "after_insert"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    BEFORE_UPSERT = "before_upsert"
    AFTER_UPSERT = "after_upsert"


Hook = Callable[[Any, "Todo"], None]

_hooks: dict[HookPoint, list[Hook]] = {point: [] for point in HookPoint}
_hooks_lock = threading.Lock()


def add_todo_hook(hook_point: HookPoint, hook: Hook) -> None:
    """Register ``hook(conn, todo)`` to run at ``hook_point`` for all future operations."""
    with _hooks_lock:
        _hooks[HookPoint(hook_point)].append(hook)


def clear_todo_hooks(hook_point: HookPoint | None = None) -> None:
    """Remove the hooks registered at ``hook_point``, or at every point if it is None."""
    with _hooks_lock:
        points = list(HookPoint) if hook_point is None else [HookPoint(hook_point)]
        for point in points:
            _hooks[point].clear()


@dataclass
class _InsertCache:
    query: str
    ret_query: str
    value_columns: tuple[str, ...]
    ret_columns: tuple[str, ...]


@dataclass
class _UpdateCache:
    query: str
    value_columns: tuple[str, ...]


_cache_lock = threading.Lock()
_insert_cache: dict[str, _InsertCache] = {}
_update_cache: dict[str, _UpdateCache] = {}
_upsert_cache: dict[str, _InsertCache] = {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _decode(column: str, value: Any) -> Any:
    if column in _TIMESTAMP_COLUMNS:
        return _to_datetime(value)
    if column == "deleted":
        return bool(value)
    if column in ("id", "status"):
        return int(value)
    if column == "description":
        return None if value is None else str(value)
    return value


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, bool):
        return int(value)
    return value


def _is_zero(value: Any) -> bool:
    return value is None or value is False or value == 0 or value == ""


def _non_zero_columns(todo: "Todo", columns: Iterable[str]) -> list[str]:
    return [col for col in columns if not _is_zero(getattr(todo, col))]


def _column_values(todo: "Todo", columns: Iterable[str]) -> tuple[Any, ...]:
    return tuple(_encode(getattr(todo, col)) for col in columns)


def _todo_from_row(names: Sequence[str], row: Sequence[Any]) -> "Todo":
    known = set(ALL_COLUMNS)
    return Todo(**{name: _decode(name, value) for name, value in zip(names, row) if name in known})


def _cursor_names(cursor: Any) -> list[str]:
    return [column[0] for column in cursor.description or ()]


def _todos_from_cursor(cursor: Any) -> list["Todo"]:
    names = _cursor_names(cursor)
    return [_todo_from_row(names, row) for row in cursor.fetchall()]


def _execute(conn: Any, sql: str, params: Iterable[Any] = ()) -> Any:
    params = tuple(params)
    logger.debug("%s %s", sql, params)
    cursor = conn.cursor()
    cursor.execute(sql, params)
    return cursor


def create_table(conn: Any) -> None:
    """Create the todos table in an SQLite database if it does not exist."""
    _execute(conn, _CREATE_TABLE_SQL)


def find_todo(conn: Any, todo_id: int, *args: str) -> "Todo":
    """Fetch a todo by id; optional column names restrict what is selected."""
    sel = ",".join(ident_quote(col) for col in args) if args else "*"
    query = f"select {sel} from {_QUOTED_TABLE} where `id`=?"
    try:
        cursor = _execute(conn, query, (todo_id,))
        row = cursor.fetchone()
    except Exception as exc:
        raise ModelError(f"models: unable to select from todos: {exc}") from exc
    if row is None:
        raise NotFoundError()
    todo = _todo_from_row(_cursor_names(cursor), row)
    todo.run_hooks(HookPoint.AFTER_SELECT, conn)
    return todo


def todo_exists(conn: Any, todo_id: int) -> bool:
    """Tell whether a todo row with this id exists."""
    query = f"select exists(select 1 from {_QUOTED_TABLE} where `id`=? limit 1)"
    try:
        row = _execute(conn, query, (todo_id,)).fetchone()
    except Exception as exc:
        raise ModelError(f"models: unable to check if todos exists: {exc}") from exc
    return bool(row[0]) if row else False


def _build_insert_cache(columns: Columns, nz_defaults: Sequence[str]) -> _InsertCache:
    wl, ret = columns.insert_column_set(
        ALL_COLUMNS, COLUMNS_WITH_DEFAULT, COLUMNS_WITHOUT_DEFAULT, nz_defaults
    )
    if wl:
        query = (
            f"INSERT INTO {_QUOTED_TABLE} (`{'`,`'.join(wl)}`) "
            f"VALUES ({placeholders(len(wl))})"
        )
    else:
        query = f"INSERT INTO {_QUOTED_TABLE} () VALUES ()"
    ret_query = ""
    if ret:
        ret_query = (
            f"SELECT `{'`,`'.join(ret)}` FROM {_QUOTED_TABLE} "
            f"WHERE {where_clause(PRIMARY_KEY_COLUMNS)}"
        )
    return _InsertCache(query, ret_query, tuple(wl), tuple(ret))


def _build_update_cache(columns: Columns) -> _UpdateCache:
    wl = columns.update_column_set(ALL_COLUMNS, PRIMARY_KEY_COLUMNS)
    if not columns.is_whitelist():
        wl = set_complement(wl, ["created_at"])
    if not wl:
        raise ModelError("models: unable to update todos, could not build whitelist")
    query = (
        f"UPDATE {_QUOTED_TABLE} SET {set_param_names(wl)} "
        f"WHERE {where_clause(PRIMARY_KEY_COLUMNS)}"
    )
    return _UpdateCache(query, (*wl, *PRIMARY_KEY_COLUMNS))


def _build_upsert_cache(
    update_columns: Columns,
    insert_columns: Columns,
    nz_defaults: Sequence[str],
    nz_uniques: Sequence[str],
) -> _InsertCache:
    insert, _ = insert_columns.insert_column_set(
        ALL_COLUMNS, COLUMNS_WITH_DEFAULT, COLUMNS_WITHOUT_DEFAULT, nz_defaults
    )
    update = update_columns.update_column_set(ALL_COLUMNS, PRIMARY_KEY_COLUMNS)
    if not update_columns.is_none() and not update:
        raise ModelError("models: unable to upsert todos, could not build update column list")
    ret = set_complement(ALL_COLUMNS, set_intersect(insert, update))
    query = build_upsert_query(TODOS_TABLE, update, insert)
    ret_query = (
        f"SELECT {','.join(ident_quote(col) for col in ret)} FROM {_QUOTED_TABLE} "
        f"WHERE {where_clause(nz_uniques)}"
    )
    return _InsertCache(query, ret_query, tuple(insert), tuple(ret))


def _cached(store: dict, key: str, build: Callable[[], Any]) -> tuple[Any, bool]:
    with _cache_lock:
        entry = store.get(key)
    if entry is not None:
        return entry, True
    return build(), False


def _remember(store: dict, key: str, entry: Any) -> None:
    with _cache_lock:
        store[key] = entry


@dataclass
class Todo:
    """A row of the todos table."""

    id: int = 0
    title: str = ""
    description: str | None = None
    status: int = 0
    deadline: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted: bool = False

    def run_hooks(self, hook_point: HookPoint, conn: Any) -> None:
        """Run every hook registered at ``hook_point`` on this record."""
        with _hooks_lock:
            hooks = list(_hooks[HookPoint(hook_point)])
        for hook in hooks:
            hook(conn, self)

    def _sync_returning(
        self,
        conn: Any,
        cursor: Any,
        ret_query: str,
        ret_columns: Sequence[str],
        key_columns: Sequence[str],
    ) -> None:
        last_id = cursor.lastrowid
        if last_id is None:
            raise SyncError()
        self.id = int(last_id)
        if last_id != 0 and tuple(ret_columns) == ("id",):
            return
        try:
            row = _execute(conn, ret_query, _column_values(self, key_columns)).fetchone()
        except Exception as exc:
            raise ModelError(f"models: unable to populate default values for todos: {exc}") from exc
        if row is None:
            raise ModelError(f"models: unable to populate default values for todos: {_NO_ROWS}")
        for col, value in zip(ret_columns, row):
            setattr(self, col, _decode(col, value))

    def insert(self, conn: Any, columns: Columns) -> None:
        """Insert this record and read back the defaults the database filled in."""
        now = _now()
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = now

        self.run_hooks(HookPoint.BEFORE_INSERT, conn)

        nz_defaults = _non_zero_columns(self, COLUMNS_WITH_DEFAULT)
        key = make_cache_key(columns, nz_defaults)
        cache, cached = _cached(_insert_cache, key, lambda: _build_insert_cache(columns, nz_defaults))

        try:
            cursor = _execute(conn, cache.query, _column_values(self, cache.value_columns))
        except Exception as exc:
            raise ModelError(f"models: unable to insert into todos: {exc}") from exc

        if cache.ret_columns:
            self._sync_returning(conn, cursor, cache.ret_query, cache.ret_columns, PRIMARY_KEY_COLUMNS)

        if not cached:
            _remember(_insert_cache, key, cache)
        self.run_hooks(HookPoint.AFTER_INSERT, conn)

    def update(self, conn: Any, columns: Columns) -> int:
        """Write this record's columns back by primary key; return rows affected."""
        self.updated_at = _now()
        self.run_hooks(HookPoint.BEFORE_UPDATE, conn)

        key = make_cache_key(columns, None)
        cache, cached = _cached(_update_cache, key, lambda: _build_update_cache(columns))

        try:
            cursor = _execute(conn, cache.query, _column_values(self, cache.value_columns))
        except Exception as exc:
            raise ModelError(f"models: unable to update todos row: {exc}") from exc
        rows_affected = cursor.rowcount

        if not cached:
            _remember(_update_cache, key, cache)
        self.run_hooks(HookPoint.AFTER_UPDATE, conn)
        return rows_affected

    def upsert(self, conn: Any, update_columns: Columns, insert_columns: Columns) -> None:
        """Insert this record, or update it when its unique key already exists."""
        now = _now()
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now

        self.run_hooks(HookPoint.BEFORE_UPSERT, conn)

        nz_defaults = _non_zero_columns(self, COLUMNS_WITH_DEFAULT)
        nz_uniques = _non_zero_columns(self, UNIQUE_COLUMNS)
        if not nz_uniques:
            raise ModelError("cannot upsert with a table that cannot conflict on a unique column")

        key = ".".join(
            [
                str(int(update_columns.kind)) + "".join(update_columns.cols),
                str(int(insert_columns.kind)) + "".join(insert_columns.cols),
                "".join(nz_defaults),
                "".join(nz_uniques),
            ]
        )
        cache, cached = _cached(
            _upsert_cache,
            key,
            lambda: _build_upsert_cache(update_columns, insert_columns, nz_defaults, nz_uniques),
        )

        try:
            cursor = _execute(conn, cache.query, _column_values(self, cache.value_columns))
        except Exception as exc:
            raise ModelError(f"models: unable to upsert for todos: {exc}") from exc

        if cache.ret_columns:
            self._sync_returning(conn, cursor, cache.ret_query, cache.ret_columns, nz_uniques)

        if not cached:
            _remember(_upsert_cache, key, cache)
        self.run_hooks(HookPoint.AFTER_UPSERT, conn)

    def delete(self, conn: Any) -> int:
        """Delete this record by primary key; return rows affected."""
        self.run_hooks(HookPoint.BEFORE_DELETE, conn)
        sql = f"DELETE FROM {_QUOTED_TABLE} WHERE `id`=?"
        try:
            cursor = _execute(conn, sql, _column_values(self, PRIMARY_KEY_COLUMNS))
        except Exception as exc:
            raise ModelError(f"models: unable to delete from todos: {exc}") from exc
        rows_affected = cursor.rowcount
        self.run_hooks(HookPoint.AFTER_DELETE, conn)
        return rows_affected

    def reload(self, conn: Any) -> None:
        """Refresh every field from the database."""
        fresh = find_todo(conn, self.id)
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))

    def exists(self, conn: Any) -> bool:
        """Tell whether this record's row exists."""
        return todo_exists(conn, self.id)