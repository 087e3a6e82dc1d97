"""Storage operations behind the todo service."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from .models import Todo, find_todo
from .query import TODO_WHERE, TodoSlice, todos
from .sqlbuild import Columns

logger = logging.getLogger(__name__)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


class RepoError(ValueError):
    """Raised when a request to the repository is invalid."""


def parse_deadline(deadline: str) -> datetime | None:
    """Parse an RFC 3339 timestamp; return None when empty or malformed."""
    if not deadline:
        return None
    match = _RFC3339.fullmatch(deadline)
    if match is None:
        return None
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    micro = int((fraction or "").ljust(6, "0")[:6])
    try:
        if offset == "Z":
            tz = timezone.utc
        else:
            sign = -1 if offset[0] == "-" else 1
            hours, minutes = int(offset[1:3]), int(offset[4:6])
            tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
        )
    except ValueError:
        return None


def sort_todos(todos: list[Todo], sort_by: int, sort_order: int) -> None:
    """Order todos in place by deadline when ``sort_by`` is 1; descending unless order is 0."""
    if sort_by == 1:
        todos.sort(key=lambda t: t.deadline or _EARLIEST, reverse=sort_order != 0)


@dataclass
class TodoRepo:
    """Creates, changes and lists todos over a database connection."""

    conn: Any

    def insert(self, title: str, desc: str, deadline: str) -> int:
        """Store a new todo and return its id."""
        todo = Todo(title=title, description=desc, deadline=parse_deadline(deadline), status=0)
        if not title or not desc:
            logger.error("Insert error: title or desc is empty")
            raise RepoError("title or desc is empty")
        if todo.deadline is not None and todo.deadline < datetime.now(timezone.utc):
            logger.error("Insert error: deadline is before today")
            raise RepoError("deadline is before today")
        try:
            todo.insert(self.conn, Columns.infer())
        except Exception as exc:
            logger.error("Insert error: %s", exc)
            raise
        return todo.id

    def update(
        self,
        todo_id: int,
        title: str | None,
        desc: str | None,
        status: int | None,
    ) -> None:
        """Change the given fields of a todo; None leaves a field as it is."""
        if (title is not None and title == "") or (desc is not None and desc == ""):
            raise RepoError("title or desc is empty")
        try:
            todo = find_todo(self.conn, todo_id)
        except Exception as exc:
            logger.error("Update: FindTodo error: %s (id=%s)", exc, todo_id)
            raise
        if title is not None:
            todo.title = title
        if desc is not None:
            todo.description = desc
        if status is not None:
            todo.status = status
        todo.updated_at = datetime.now(timezone.utc)
        try:
            todo.update(self.conn, Columns.infer())
        except Exception as exc:
            logger.error("Update: Update error: %s (id=%s)", exc, todo_id)
            raise

    def soft_delete(self, todo_id: int) -> None:
        """Mark a todo as deleted without removing its row."""
        try:
            todo = find_todo(self.conn, todo_id)
        except Exception as exc:
            logger.error("SoftDelete: FindTodo error: %s (id=%s)", exc, todo_id)
            raise
        todo.deleted = True
        try:
            todo.update(self.conn, Columns.whitelist("deleted"))
        except Exception as exc:
            logger.error("SoftDelete: Update error: %s (id=%s)", exc, todo_id)
            raise

    def list(self, status_filter: int, sort_by: int, sort_order: int) -> TodoSlice:
        """List todos: 1 or 2 filter by status, -1 includes deleted, anything else all live ones."""
        if status_filter in (1, 2):
            query = todos(TODO_WHERE.deleted.eq(False), TODO_WHERE.status.eq(status_filter))
        elif status_filter == -1:
            query = todos()
        else:
            query = todos(TODO_WHERE.deleted.eq(False))
        try:
            found = query.all(self.conn)
        except Exception as exc:
            logger.error("List error: %s (statusFilter=%s)", exc, status_filter)
            raise
        sort_todos(found, sort_by, sort_order)
        return found