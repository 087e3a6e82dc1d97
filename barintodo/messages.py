"""Request, response and error types of the todo service, with their JSON form."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, TypeVar, Union

M = TypeVar("M")


class Code(IntEnum):
    """Error codes a service call can fail with."""

    CANCELED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    def __str__(self) -> str:
        return self.name.lower()


class ConnectError(Exception):
    """A failed service call, carrying a code and a message."""

    def __init__(self, code: Code, message: str = ""):
        self.code = Code(code)
        self.message = message
        super().__init__(f"{self.code.name.lower()}: {message}")


class Status(IntEnum):
    """State of a todo."""

    UNKNOWN = 0
    OPEN = 1
    DONE = 2


class SortBy(IntEnum):
    """Field a todo listing is ordered by."""

    UNSPECIFIED = 0
    DEADLINE = 1


class SortOrder(IntEnum):
    """Direction of a todo listing's order."""

    ASC = 0
    DESC = 1


def _int64() -> Any:
    return field(default=0, metadata={"kind": "int64"})


def _enum(enum_cls: type[IntEnum]) -> Any:
    return field(default=enum_cls(0), metadata={"kind": "enum", "enum": enum_cls})


def _message(cls: type) -> Any:
    return field(default=None, metadata={"kind": "message", "type": cls})


def _repeated(cls: type) -> Any:
    return field(default_factory=list, metadata={"kind": "repeated", "type": cls})


@dataclass
class TodoMessage:
    """A todo as it travels over the wire."""

    id: int = _int64()
    title: str = ""
    description: str = ""
    status: Union[Status, int] = _enum(Status)
    deadline: str = ""
    created_at: str = ""


@dataclass
class CreateTodoRequest:
    title: str = ""
    description: str = ""
    deadline: str = ""


@dataclass
class CreateTodoResponse:
    todo: TodoMessage | None = _message(TodoMessage)


@dataclass
class UpdateTodoRequest:
    id: int = _int64()
    title: str = ""
    description: str = ""
    status: Union[Status, int] = _enum(Status)


@dataclass
class UpdateTodoResponse:
    pass


@dataclass
class DeleteTodoRequest:
    id: int = _int64()


@dataclass
class DeleteTodoResponse:
    pass


@dataclass
class ListTodosRequest:
    status_filter: Union[Status, int] = _enum(Status)
    sort_by: Union[SortBy, int] = _enum(SortBy)
    sort_order: Union[SortOrder, int] = _enum(SortOrder)


@dataclass
class ListTodosResponse:
    todos: list[TodoMessage] = _repeated(TodoMessage)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _is_default(value: Any) -> bool:
    return value is None or value == "" or value == 0


def _to_dict(message: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(message):
        value = getattr(message, f.name)
        kind = f.metadata.get("kind")
        key = _camel(f.name)
        if kind == "message":
            if value is not None:
                out[key] = _to_dict(value)
        elif kind == "repeated":
            if value:
                out[key] = [_to_dict(item) for item in value]
        elif _is_default(value):
            continue
        elif kind == "int64":
            out[key] = str(int(value))
        elif kind == "enum":
            out[key] = int(value)
        else:
            out[key] = value
    return out


def _decode_value(f: Any, raw: Any) -> Any:
    kind = f.metadata.get("kind")
    if kind == "message":
        return _from_dict(f.metadata["type"], raw)
    if kind == "repeated":
        if not isinstance(raw, list):
            raise ValueError(f"field {f.name}: expected a JSON array")
        return [_from_dict(f.metadata["type"], item) for item in raw]
    if kind == "int64":
        if isinstance(raw, bool) or not isinstance(raw, (int, str)):
            raise ValueError(f"field {f.name}: expected an integer")
        try:
            return int(raw)
        except ValueError as exc:
            raise ValueError(f"field {f.name}: invalid integer {raw!r}") from exc
    if kind == "enum":
        enum_cls = f.metadata["enum"]
        if isinstance(raw, str):
            try:
                return enum_cls[raw]
            except KeyError as exc:
                raise ValueError(f"field {f.name}: unknown value {raw!r}") from exc
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValueError(f"field {f.name}: expected an enum name or number")
        try:
            return enum_cls(raw)
        except ValueError:
            return raw
    if not isinstance(raw, str):
        raise ValueError(f"field {f.name}: expected a string")
    return raw


def _from_dict(cls: type[M], data: Any) -> M:
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__}: expected a JSON object")
    by_key = {}
    for f in fields(cls):
        by_key[f.name] = f
        by_key[_camel(f.name)] = f
    kwargs = {}
    for key, raw in data.items():
        f = by_key.get(key)
        if f is None or raw is None:
            continue
        kwargs[f.name] = _decode_value(f, raw)
    return cls(**kwargs)


def to_json(message: Any) -> str:
    """Serialise a message to compact JSON, leaving out fields at their default."""
    return json.dumps(_to_dict(message), separators=(",", ":"))


def from_json(cls: type[M], data: str | bytes) -> M:
    """Parse JSON into a message of type ``cls``; raise ValueError on bad input."""
    return _from_dict(cls, json.loads(data))