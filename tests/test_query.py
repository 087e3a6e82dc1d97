import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from barintodo.models import (
    HookPoint,
    ModelError,
    NotFoundError,
    Todo,
    add_todo_hook,
    clear_todo_hooks,
    create_table,
    find_todo,
)
from barintodo.query import TODO_WHERE, Condition, TodoQuery, TodoSlice, Where, todos
from barintodo.sqlbuild import Columns


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_table(connection)
    yield connection
    connection.close()


@pytest.fixture(autouse=True)
def _no_hooks():
    clear_todo_hooks()
    yield
    clear_todo_hooks()


def _insert(conn, title="title", description="desc", deadline=None):
    todo = Todo(title=title, description=description, deadline=deadline)
    todo.insert(conn, Columns.infer())
    return todo


def test_todos_builds_query():
    cond = TODO_WHERE.id.eq(3)
    assert todos() == TodoQuery(())
    assert todos(cond).conditions == (cond,)


def test_todos_rejects_non_condition():
    with pytest.raises(TypeError):
        todos("id = 1")


def test_where_fragments():
    assert TODO_WHERE.id.eq(5) == Condition("`todos`.`id` = ?", (5,))
    assert TODO_WHERE.status.in_([1, 2]) == Condition("`todos`.`status` IN (?,?)", (1, 2))
    assert TODO_WHERE.deadline.is_null() == Condition("`todos`.`deadline` IS NULL")
    assert TODO_WHERE.title.like("a%") == Condition("`todos`.`title` LIKE ?", ("a%",))
    assert Where("x").eq(None) == Condition("x IS NULL")
    assert Where("x").neq(None) == Condition("x IS NOT NULL")
    assert TODO_WHERE.deleted.eq(False).params == (0,)


def test_delete_then_count_zero(conn):
    todo = _insert(conn)
    assert todo.delete(conn) == 1
    assert todos().count(conn) == 0


def test_query_delete_all(conn):
    _insert(conn)
    assert todos().delete_all(conn) == 1
    assert todos().count(conn) == 0


def test_slice_delete_all(conn):
    todo = _insert(conn)
    assert TodoSlice([todo]).delete_all(conn) == 1
    assert todos().count(conn) == 0


def test_empty_slice_operations_are_noops(conn):
    _insert(conn)
    assert TodoSlice().delete_all(conn) == 0
    assert TodoSlice().update_all(conn, {"title": "x"}) == 0
    assert todos().count(conn) == 1


def test_one_returns_record(conn):
    todo = _insert(conn, title="only")
    found = todos().one(conn)
    assert found.id == todo.id
    assert found.title == "only"


def test_one_on_empty_raises(conn):
    with pytest.raises(NotFoundError):
        todos().one(conn)


def test_all_returns_two(conn):
    _insert(conn, title="a")
    _insert(conn, title="b")
    result = todos().all(conn)
    assert isinstance(result, TodoSlice)
    assert sorted(t.title for t in result) == ["a", "b"]


def test_count_two(conn):
    _insert(conn)
    _insert(conn)
    assert todos().count(conn) == 2


def test_select_one(conn):
    _insert(conn)
    assert len(todos().all(conn)) == 1


def test_insert_whitelist_counts_one(conn):
    todo = Todo(id=7, title="t", description="d")
    todo.insert(conn, Columns.whitelist("id", "title", "description", "deadline"))
    assert todos().count(conn) == 1
    assert todos(TODO_WHERE.id.eq(7)).one(conn).title == "t"


def test_exists(conn):
    todo = _insert(conn)
    assert todos(TODO_WHERE.id.eq(todo.id)).exists(conn) is True
    assert todos(TODO_WHERE.id.eq(todo.id + 100)).exists(conn) is False


def test_filters_on_status_and_deleted(conn):
    a = _insert(conn, title="a")
    b = _insert(conn, title="b")
    c = _insert(conn, title="c")
    TodoSlice([b]).update_all(conn, {"status": 2})
    TodoSlice([c]).update_all(conn, {"deleted": True})
    open_ids = [t.id for t in todos(TODO_WHERE.deleted.eq(False)).all(conn)]
    assert sorted(open_ids) == sorted([a.id, b.id])
    done = todos(TODO_WHERE.deleted.eq(False), TODO_WHERE.status.eq(2)).all(conn)
    assert [t.id for t in done] == [b.id]
    assert todos(TODO_WHERE.status.not_in([2])).count(conn) == 2


def test_deadline_conditions(conn):
    future = datetime.now(timezone.utc) + timedelta(days=1)
    _insert(conn, title="with", deadline=future)
    _insert(conn, title="without")
    assert todos(TODO_WHERE.deadline.is_null()).one(conn).title == "without"
    assert todos(TODO_WHERE.deadline.is_not_null()).one(conn).title == "with"
    later = future + timedelta(days=1)
    assert todos(TODO_WHERE.deadline.lt(later)).count(conn) == 1


def test_reload_all_restores_values(conn):
    todo = _insert(conn, title="stored")
    todo.title = "local"
    slice_ = TodoSlice([todo])
    slice_.reload_all(conn)
    assert [t.title for t in slice_] == ["stored"]


def test_slice_update_all(conn):
    todo = _insert(conn)
    assert TodoSlice([todo]).update_all(conn, {"title": "changed", "status": 2}) == 1
    fresh = find_todo(conn, todo.id)
    assert (fresh.title, fresh.status) == ("changed", 2)


def test_slice_update_all_requires_columns(conn):
    todo = _insert(conn)
    with pytest.raises(ModelError):
        TodoSlice([todo]).update_all(conn, {})


def test_query_update_all(conn):
    a = _insert(conn, title="a")
    _insert(conn, title="b")
    assert todos(TODO_WHERE.id.eq(a.id)).update_all(conn, {"description": "new"}) == 1
    assert find_todo(conn, a.id).description == "new"
    assert todos(TODO_WHERE.description.eq("new")).count(conn) == 1


def test_after_select_hook_runs_on_all(conn):
    _insert(conn, title="a")

    def hook(_conn, todo):
        todo.title = "hooked"

    add_todo_hook(HookPoint.AFTER_SELECT, hook)
    assert [t.title for t in todos().all(conn)] == ["hooked"]
    assert todos().one(conn).title == "hooked"


def test_delete_hooks_run_on_slice(conn):
    todo = _insert(conn)
    seen = []
    add_todo_hook(HookPoint.BEFORE_DELETE, lambda _c, t: seen.append(("before", t.id)))
    add_todo_hook(HookPoint.AFTER_DELETE, lambda _c, t: seen.append(("after", t.id)))
    TodoSlice([todo]).delete_all(conn)
    assert seen == [("before", todo.id), ("after", todo.id)]


def test_query_errors_are_wrapped():
    broken = sqlite3.connect(":memory:")
    try:
        with pytest.raises(ModelError):
            todos().all(broken)
        with pytest.raises(ModelError):
            todos().count(broken)
    finally:
        broken.close()