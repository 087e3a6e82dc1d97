"""Service calls of the todo API, answered from a TodoRepo."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .messages import (
    Code,
    ConnectError,
    CreateTodoRequest,
    CreateTodoResponse,
    DeleteTodoRequest,
    DeleteTodoResponse,
    ListTodosRequest,
    ListTodosResponse,
    Status,
    TodoMessage,
    UpdateTodoRequest,
    UpdateTodoResponse,
)
from .repo import TodoRepo


def _rfc3339(moment: datetime) -> str:
    text = moment.isoformat(timespec="seconds")
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _status(value: int) -> Status | int:
    try:
        return Status(value)
    except ValueError:
        return value


@dataclass
class TodoHandler:
    """Implements the todo service on top of a repository."""

    repo: TodoRepo

    def create_todo(self, request: CreateTodoRequest) -> CreateTodoResponse:
        try:
            todo_id = self.repo.insert(request.title, request.description, request.deadline)
        except Exception as exc:
            raise ConnectError(Code.INTERNAL, str(exc)) from exc
        return CreateTodoResponse(
            todo=TodoMessage(
                id=todo_id,
                title=request.title,
                description=request.description,
                status=Status.UNKNOWN,
                deadline=request.deadline,
                created_at=_rfc3339(datetime.now().astimezone()),
            )
        )

    def update_todo(self, request: UpdateTodoRequest) -> UpdateTodoResponse:
        try:
            self.repo.update(request.id, request.title, request.description, int(request.status))
        except Exception as exc:
            raise ConnectError(Code.INTERNAL, str(exc)) from exc
        return UpdateTodoResponse()

    def delete_todo(self, request: DeleteTodoRequest) -> DeleteTodoResponse:
        try:
            self.repo.soft_delete(request.id)
        except Exception as exc:
            raise ConnectError(Code.INTERNAL, str(exc)) from exc
        return DeleteTodoResponse()

    def list_todos(self, request: ListTodosRequest) -> ListTodosResponse:
        try:
            rows = self.repo.list(
                int(request.status_filter), int(request.sort_by), int(request.sort_order)
            )
        except Exception as exc:
            raise ConnectError(Code.INTERNAL, str(exc)) from exc
        return ListTodosResponse(
            todos=[
                TodoMessage(
                    id=row.id,
                    title=row.title,
                    description=row.description or "",
                    status=_status(row.status),
                    deadline=_rfc3339(row.deadline) if row.deadline is not None else "",
                )
                for row in rows
            ]
        )


def new_handler(repo: TodoRepo) -> TodoHandler:
    """Build the service implementation for ``repo``."""
    return TodoHandler(repo=repo)