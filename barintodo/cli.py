"""Command-line client for the todo service."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Callable, Sequence

from .messages import (
    ConnectError,
    CreateTodoRequest,
    DeleteTodoRequest,
    ListTodosRequest,
    SortBy,
    SortOrder,
    Status,
    TodoMessage,
    UpdateTodoRequest,
)
from .service import TodoServiceClient

DEFAULT_SERVER_URL = "http://localhost:8080"


def _bounded_int(bits: int) -> Callable[[str], int]:
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1

    def parse(text: str) -> int:
        try:
            value = int(text, 0)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"invalid integer {text!r}") from exc
        if not low <= value <= high:
            raise argparse.ArgumentTypeError(f"{text} is out of range for int{bits}")
        return value

    parse.__name__ = f"int{bits}"
    return parse


_int8 = _bounded_int(8)
_int32 = _bounded_int(32)
_int64 = _bounded_int(64)


def _enum_or_int(enum_cls: type, value: int):
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _status_text(status) -> str:
    try:
        return Status(int(status)).name
    except ValueError:
        return str(int(status))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="todo")
    commands = parser.add_subparsers(dest="command", metavar="command")

    create = commands.add_parser("create", help="Add todo")
    create.add_argument("--title", required=True, help="title")
    create.add_argument("--desc", required=True, help="description")
    create.add_argument("--deadline", required=True, help="deadline")

    update = commands.add_parser("update", help="Update todo")
    update.add_argument("--id", type=_int64, required=True, help="todo ID")
    update.add_argument("--title", default="", help="title")
    update.add_argument("--desc", default="", help="description")
    update.add_argument(
        "--status", type=_int32, default=0, help="status (0=UNKNOWN, 1=OPEN, 2=DONE)"
    )

    delete = commands.add_parser("delete", help="Delete todo (soft delete)")
    delete.add_argument("--id", type=_int64, required=True, help="todo ID")

    listing = commands.add_parser("list", help="List todos")
    listing.add_argument(
        "--status",
        type=_int8,
        default=0,
        help="filter by status (0=ALL, 1=OPEN, 2=DONE, -1=ALL(WITH DELETED))",
    )
    listing.add_argument("--sort-by", type=_int8, default=0, help="sort by deadline")
    listing.add_argument(
        "--sort-order", type=_int8, default=0, help="sort order (0=ASC, 1=DESC)"
    )
    return parser


def _print_todo(todo: TodoMessage) -> None:
    print(f"[{todo.id}] {todo.title}")
    if todo.description:
        print(f"    Description: {todo.description}")
    print(f"    Status: {_status_text(todo.status)}")
    if todo.deadline:
        print(f"    Deadline: {todo.deadline}")
    print()


def _run(client: TodoServiceClient, args: argparse.Namespace) -> None:
    if args.command == "create":
        response = client.create_todo(
            CreateTodoRequest(title=args.title, description=args.desc, deadline=args.deadline)
        )
        todo = response.todo or TodoMessage()
        print(
            "Created todo with ID:", todo.id,
            "Title:", todo.title,
            "Description:", todo.description,
            "Status:", _status_text(todo.status),
            "Deadline:", todo.deadline,
        )
    elif args.command == "update":
        client.update_todo(
            UpdateTodoRequest(
                id=args.id,
                title=args.title,
                description=args.desc,
                status=_enum_or_int(Status, args.status),
            )
        )
        print("Updated successfully")
    elif args.command == "delete":
        client.delete_todo(DeleteTodoRequest(id=args.id))
        print("Deleted successfully")
    elif args.command == "list":
        response = client.list_todos(
            ListTodosRequest(
                status_filter=_enum_or_int(Status, args.status),
                sort_by=_enum_or_int(SortBy, args.sort_by),
                sort_order=_enum_or_int(SortOrder, args.sort_order),
            )
        )
        for todo in response.todos:
            _print_todo(todo)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the todo client; exit with status 1 when the service call fails."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    server_url = os.environ.get("SERVER_URL") or DEFAULT_SERVER_URL
    client = TodoServiceClient(server_url)
    try:
        _run(client, args)
    except ConnectError as exc:
        print(exc, file=sys.stderr)
        raise SystemExit(1) from exc
    return 0


if __name__ == "__main__":
    sys.exit(main())