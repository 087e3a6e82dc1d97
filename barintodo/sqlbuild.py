"""SQL fragment builders and column-set inference for the todos table (MySQL dialect)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Sequence

LEFT_QUOTE = "`"
RIGHT_QUOTE = "`"
USE_LAST_INSERT_ID = True

TODOS_TABLE = "todos"
TABLE_NAMES = {"todos": TODOS_TABLE}
VIEW_NAMES: dict[str, str] = {}


class ColumnKind(IntEnum):
    """How a column list should be interpreted when building a statement."""

    NONE = 0
    INFER = 1
    WHITELIST = 2


@dataclass(frozen=True)
class Columns:
    """A column selection used for inserts, updates and upserts."""

    kind: ColumnKind = ColumnKind.INFER
    cols: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def infer(cls) -> "Columns":
        return cls(ColumnKind.INFER)

    @classmethod
    def whitelist(cls, *args: str) -> "Columns":
        return cls(ColumnKind.WHITELIST, tuple(args))

    @classmethod
    def none(cls) -> "Columns":
        return cls(ColumnKind.NONE)

    def is_whitelist(self) -> bool:
        return self.kind is ColumnKind.WHITELIST

    def is_none(self) -> bool:
        return self.kind is ColumnKind.NONE

    def insert_column_set(
        self,
        all_columns: Sequence[str],
        with_default: Sequence[str],
        without_default: Sequence[str],
        non_zero_defaults: Sequence[str],
    ) -> tuple[list[str], list[str]]:
        """Return the columns to insert and the columns to read back afterwards."""
        if self.kind is ColumnKind.NONE:
            return [], []
        if self.kind is ColumnKind.WHITELIST:
            return list(self.cols), []
        insert = sorted([*without_default, *non_zero_defaults])
        returning = set_complement(with_default, non_zero_defaults)
        return insert, returning

    def update_column_set(
        self, all_columns: Sequence[str], primary_keys: Sequence[str]
    ) -> list[str]:
        """Return the columns an update statement should set."""
        if self.kind is ColumnKind.NONE:
            return []
        if self.kind is ColumnKind.WHITELIST:
            return list(self.cols)
        return set_complement(all_columns, primary_keys)


def make_cache_key(columns: Columns, nz_defaults: Sequence[str] | None) -> str:
    """Build the key under which a prepared statement is cached."""
    key = str(int(columns.kind)) + "".join(columns.cols)
    if nz_defaults:
        key += "." + "".join(nz_defaults)
    return key


def ident_quote(name: str) -> str:
    """Quote each dot-separated part of an identifier unless already quoted."""
    parts = []
    for part in name.split("."):
        if part == "*" or part.startswith(LEFT_QUOTE) or part.endswith(RIGHT_QUOTE):
            parts.append(part)
        else:
            parts.append(f"{LEFT_QUOTE}{part}{RIGHT_QUOTE}")
    return ".".join(parts)


def placeholders(count: int) -> str:
    """Return ``count`` comma-separated positional placeholders."""
    if count < 0:
        raise ValueError("placeholder count must not be negative")
    return ",".join("?" * count)


def where_clause(columns: Iterable[str]) -> str:
    """Return an equality condition on every column, joined with AND."""
    return " AND ".join(f"{ident_quote(col)}=?" for col in columns)


def where_clause_repeated(columns: Sequence[str], count: int) -> str:
    """Return ``count`` copies of the where clause, each parenthesised and joined with OR."""
    if count < 0:
        raise ValueError("repeat count must not be negative")
    clause = where_clause(columns)
    return " OR ".join(f"({clause})" for _ in range(count))


def set_param_names(columns: Iterable[str]) -> str:
    """Return the SET list of an update statement."""
    return ",".join(f"{ident_quote(col)}=?" for col in columns)


def set_complement(a: Iterable[str], b: Iterable[str]) -> list[str]:
    """Elements of ``a`` not in ``b``, keeping the order of ``a``."""
    excluded = set(b)
    return [item for item in a if item not in excluded]


def set_intersect(a: Iterable[str], b: Iterable[str]) -> list[str]:
    """Elements of ``a`` that are also in ``b``, keeping the order of ``a``."""
    included = set(b)
    return [item for item in a if item in included]


def build_upsert_query(
    table_name: str, update: Sequence[str], whitelist: Sequence[str]
) -> str:
    """Build a MySQL upsert; with nothing to update it becomes INSERT IGNORE."""
    quoted_cols = [ident_quote(col) for col in whitelist]
    table = ident_quote(table_name)
    columns = ",".join(quoted_cols)
    values = placeholders(len(quoted_cols))

    if not update:
        return f"INSERT IGNORE INTO {table} ({columns}) VALUES ({values})"

    assignments = ",".join(
        f"{quoted} = VALUES({quoted})" for quoted in map(ident_quote, update)
    )
    return (
        f"INSERT INTO {table} ({columns}) VALUES ({values}) "
        f"ON DUPLICATE KEY UPDATE {assignments}"
    )