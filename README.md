# barintodo

A small to-do list service: a storage layer, a WSGI application that serves
four JSON procedures, and a command-line client that calls them.

A to-do has a title, a description, a status (`UNKNOWN` = 0, `OPEN` = 1,
`DONE` = 2), an optional deadline and creation and update times. Deleting a
to-do through the service only sets its `deleted` flag. The row stays in the
database.

The package uses only the standard library.

## Installing

```
pip install .
```

For the tests, `pip install .[test]` and then run `pytest`.

## The command-line client

`todo` talks to a running service. It uses the address in the `SERVER_URL`
environment variable, or `http://localhost:8080` when that is unset or empty.

```
todo create --title "Buy milk" --desc "Two litres" --deadline 2030-01-01T10:00:00Z
todo update --id 1 --title "Buy milk" --desc "Three litres" --status 1
todo delete --id 1
todo list --status 0 --sort-by 1 --sort-order 1
```

- `create` needs `--title`, `--desc` and `--deadline`. The title and
  description must not be empty. The deadline is an RFC 3339 timestamp. A
  deadline in the past is refused. An empty or unparseable deadline is stored
  as no deadline.
- `update` needs `--id`. The service writes the title, the description and
  the status every time. `--title` and `--desc` default to the empty string,
  and an empty one is refused, so give both. `--status` defaults to 0.
- `delete --id N` marks the to-do as deleted.
- `list`:
  - `--status` is 0 for every to-do not deleted, 1 for `OPEN`, 2 for `DONE`
    and -1 for every to-do including deleted ones. Any other value behaves
    like 0.
  - `--sort-by 1` orders by deadline. To-dos without one count as earliest.
    `--sort-order 0` is ascending and anything else is descending.
  - Each to-do is printed as `[id] title`, followed by its description,
    status and deadline.

Numbers are checked against the ranges the service expects: 64-bit for
`--id`, 32-bit for `update --status` and 8-bit for the `list` options.

When a call fails, the client prints the error code and message to standard
error and exits with status 1.

## Running the service

`barintodo.service.new_todo_service_handler(service, *interceptors)` returns
the path prefix `/todo.v1.TodoService/` and a WSGI application
(`TodoServiceApp`). You host that application yourself. The package has no
server command of its own. For example:

```python
import logging
import sqlite3
from wsgiref.simple_server import make_server

from barintodo.handler import new_handler
from barintodo.middleware import logging_interceptor
from barintodo.models import create_table
from barintodo.repo import TodoRepo
from barintodo.service import new_todo_service_handler

logging.basicConfig(level=logging.INFO)

conn = sqlite3.connect("todos.db")
create_table(conn)
handler = new_handler(TodoRepo(conn))
path, app = new_todo_service_handler(handler, logging_interceptor())

make_server("localhost", 8080, app).serve_forever()
```

The procedures are `CreateTodo`, `UpdateTodo`, `DeleteTodo` and `ListTodos`,
each under `/todo.v1.TodoService/`. The application routes requests as
follows:

- A request to one of these paths must be a `POST` with
  `Content-Type: application/json`. It gets back a JSON body with camel-case
  field names. Fields at their default value are left out, and 64-bit ids are
  written as strings.
- An unknown path gets 404.
- Any method other than `POST` gets 405.
- Any other content type gets 415.

Errors come back as `{"code": ..., "message": ...}` with a matching HTTP
status.

`logging_interceptor()` logs the start of each call through the standard
`logging` module. It also logs the call's failure or completion, with its
duration. Configure logging if you want to see those lines.

`TodoServiceClient(base_url)` is the client the command uses. It has
`create_todo`, `update_todo`, `delete_todo` and `list_todos`, which take and
return the dataclasses in `barintodo.messages`. A failed call raises
`ConnectError`, which carries a `Code`. `UnimplementedTodoService` answers
every procedure with `Code.UNIMPLEMENTED`.

## Using the storage layer directly

The storage code takes any DB-API connection that uses `?` placeholders.
`barintodo.models.create_table(conn)` creates the `todos` table in SQLite.

- `barintodo.models.Todo` is a record with these methods:
  - `insert(conn, columns)`
  - `update(conn, columns)`
  - `upsert(conn, update_columns, insert_columns)`
  - `delete(conn)`
  - `reload(conn)`
  - `exists(conn)`

  The `columns` arguments are `barintodo.sqlbuild.Columns.infer()`,
  `Columns.whitelist(...)` or `Columns.none()`.
- `find_todo(conn, id)` raises `NotFoundError` when no row matches.
  `todo_exists(conn, id)` tells whether the row is there.
- `add_todo_hook(HookPoint..., hook)` registers `hook(conn, todo)` to run
  before or after selects, inserts, updates, deletes and upserts.
  `clear_todo_hooks()` removes hooks.
- `barintodo.query.todos(*conditions)` builds a `TodoQuery`, with `one`,
  `all`, `count`, `exists`, `update_all` and `delete_all`. Conditions come
  from `TODO_WHERE.<column>`, for example `TODO_WHERE.deleted.eq(False)`.
  `all` returns a `TodoSlice`, a list with `update_all`, `delete_all` and
  `reload_all`.
- `barintodo.repo.TodoRepo(conn)` holds the rules the service applies. It has
  `insert`, `update`, `soft_delete` and `list`. Invalid input raises
  `RepoError`.

## What it does not do

- The service speaks JSON over HTTP only. It does not accept binary
  protocol-buffer or gRPC requests.
- There is no command that starts the service. Host the WSGI application as
  shown above.
- `Todo.upsert` emits MySQL statements (`INSERT ... ON DUPLICATE KEY UPDATE`
  or `INSERT IGNORE`), which SQLite does not accept. On an SQLite connection
  it fails with `ModelError`.