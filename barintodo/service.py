"""HTTP binding of the todo service: a JSON client and a WSGI application."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from http import HTTPStatus
from typing import Any, Callable, Iterable

from .messages import (
    Code,
    ConnectError,
    CreateTodoRequest,
    CreateTodoResponse,
    DeleteTodoRequest,
    DeleteTodoResponse,
    ListTodosRequest,
    ListTodosResponse,
    UpdateTodoRequest,
    UpdateTodoResponse,
    from_json,
    to_json,
)
from .middleware import RequestInfo

TODO_SERVICE_NAME = "todo.v1.TodoService"
SERVICE_PATH = "/todo.v1.TodoService/"

CREATE_TODO_PROCEDURE = "/todo.v1.TodoService/CreateTodo"
UPDATE_TODO_PROCEDURE = "/todo.v1.TodoService/UpdateTodo"
DELETE_TODO_PROCEDURE = "/todo.v1.TodoService/DeleteTodo"
LIST_TODOS_PROCEDURE = "/todo.v1.TodoService/ListTodos"

_JSON = "application/json"

_ROUTES: dict[str, tuple[str, type]] = {
    CREATE_TODO_PROCEDURE: ("create_todo", CreateTodoRequest),
    UPDATE_TODO_PROCEDURE: ("update_todo", UpdateTodoRequest),
    DELETE_TODO_PROCEDURE: ("delete_todo", DeleteTodoRequest),
    LIST_TODOS_PROCEDURE: ("list_todos", ListTodosRequest),
}

_CODE_TO_HTTP = {
    Code.CANCELED: 499,
    Code.UNKNOWN: 500,
    Code.INVALID_ARGUMENT: 400,
    Code.DEADLINE_EXCEEDED: 504,
    Code.NOT_FOUND: 404,
    Code.ALREADY_EXISTS: 409,
    Code.PERMISSION_DENIED: 403,
    Code.RESOURCE_EXHAUSTED: 429,
    Code.FAILED_PRECONDITION: 400,
    Code.ABORTED: 409,
    Code.OUT_OF_RANGE: 400,
    Code.UNIMPLEMENTED: 501,
    Code.INTERNAL: 500,
    Code.UNAVAILABLE: 503,
    Code.DATA_LOSS: 500,
    Code.UNAUTHENTICATED: 401,
}

_HTTP_TO_CODE = {
    400: Code.INTERNAL,
    401: Code.UNAUTHENTICATED,
    403: Code.PERMISSION_DENIED,
    404: Code.UNIMPLEMENTED,
    429: Code.UNAVAILABLE,
    502: Code.UNAVAILABLE,
    503: Code.UNAVAILABLE,
    504: Code.UNAVAILABLE,
}

UnaryCall = Callable[[RequestInfo, Any], Any]
Interceptor = Callable[[UnaryCall], UnaryCall]


def _status_line(status: int) -> str:
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        phrase = "Client Closed Request" if status == 499 else "Unknown"
    return f"{status} {phrase}"


def _error_body(error: ConnectError) -> bytes:
    body: dict[str, str] = {"code": str(error.code)}
    if error.message:
        body["message"] = error.message
    return json.dumps(body, separators=(",", ":")).encode()


def _error_from_response(status: int, payload: bytes) -> ConnectError:
    try:
        data = json.loads(payload)
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("code"), str):
        try:
            code = Code[data["code"].upper()]
        except KeyError:
            code = Code.UNKNOWN
        message = data.get("message", "")
        return ConnectError(code, message if isinstance(message, str) else str(message))
    code = _HTTP_TO_CODE.get(status, Code.UNKNOWN)
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        phrase = f"HTTP status {status}"
    return ConnectError(code, phrase)


class TodoServiceClient:
    """Calls a todo service over HTTP using JSON-encoded unary requests."""

    def __init__(
        self,
        base_url: str,
        opener: urllib.request.OpenerDirector | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._opener = opener or urllib.request.build_opener()

    def _call(self, procedure: str, request: Any, response_cls: type) -> Any:
        http_request = urllib.request.Request(
            self.base_url + procedure,
            data=to_json(request).encode(),
            method="POST",
            headers={"Content-Type": _JSON, "Connect-Protocol-Version": "1"},
        )
        options = {} if self.timeout is None else {"timeout": self.timeout}
        try:
            with self._opener.open(http_request, **options) as response:
                payload = response.read()
        except urllib.error.HTTPError as exc:
            raise _error_from_response(exc.code, exc.read()) from exc
        except urllib.error.URLError as exc:
            raise ConnectError(Code.UNAVAILABLE, str(exc.reason)) from exc
        except OSError as exc:
            raise ConnectError(Code.UNAVAILABLE, str(exc)) from exc
        try:
            return from_json(response_cls, payload or b"{}")
        except ValueError as exc:
            raise ConnectError(
                Code.INTERNAL, f"unmarshal into {response_cls.__name__}: {exc}"
            ) from exc

    def create_todo(self, request: CreateTodoRequest) -> CreateTodoResponse:
        return self._call(CREATE_TODO_PROCEDURE, request, CreateTodoResponse)

    def update_todo(self, request: UpdateTodoRequest) -> UpdateTodoResponse:
        return self._call(UPDATE_TODO_PROCEDURE, request, UpdateTodoResponse)

    def delete_todo(self, request: DeleteTodoRequest) -> DeleteTodoResponse:
        return self._call(DELETE_TODO_PROCEDURE, request, DeleteTodoResponse)

    def list_todos(self, request: ListTodosRequest) -> ListTodosResponse:
        return self._call(LIST_TODOS_PROCEDURE, request, ListTodosResponse)


class TodoServiceApp:
    """WSGI application serving the todo service's procedures as JSON over POST."""

    def __init__(self, service: Any, interceptors: Iterable[Interceptor] = ()):
        self.service = service
        self.interceptors = tuple(interceptors)
        self._calls = {
            procedure: self._chain(getattr(service, attr))
            for procedure, (attr, _) in _ROUTES.items()
        }

    def _chain(self, method: Callable[[Any], Any]) -> UnaryCall:
        def call(info: RequestInfo, request: Any) -> Any:
            return method(request)

        for interceptor in reversed(self.interceptors):
            call = interceptor(call)
        return call

    @staticmethod
    def _respond(
        start_response: Callable,
        status: int,
        body: bytes,
        content_type: str | None = None,
        extra_headers: Iterable[tuple[str, str]] = (),
    ) -> list[bytes]:
        headers = [("Content-Length", str(len(body)))]
        if content_type:
            headers.append(("Content-Type", content_type))
        headers.extend(extra_headers)
        start_response(_status_line(status), headers)
        return [body]

    def _error(self, start_response: Callable, error: ConnectError) -> list[bytes]:
        status = _CODE_TO_HTTP.get(error.code, 500)
        return self._respond(start_response, status, _error_body(error), _JSON)

    @staticmethod
    def _read_body(environ: dict) -> bytes:
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        stream = environ.get("wsgi.input")
        if stream is None or length <= 0:
            return b""
        return stream.read(length)

    @staticmethod
    def _peer(environ: dict) -> str:
        addr = environ.get("REMOTE_ADDR", "")
        port = environ.get("REMOTE_PORT")
        return f"{addr}:{port}" if addr and port else addr

    def __call__(self, environ: dict, start_response: Callable) -> list[bytes]:
        path = environ.get("PATH_INFO", "")
        route = _ROUTES.get(path)
        if route is None:
            return self._respond(
                start_response, 404, b"404 page not found\n", "text/plain; charset=utf-8"
            )
        if environ.get("REQUEST_METHOD", "").upper() != "POST":
            return self._respond(start_response, 405, b"", extra_headers=[("Allow", "POST")])
        content_type = environ.get("CONTENT_TYPE", "").split(";")[0].strip().lower()
        if content_type != _JSON:
            return self._respond(
                start_response, 415, b"", extra_headers=[("Accept-Post", _JSON)]
            )

        _, request_cls = route
        body = self._read_body(environ)
        try:
            request = from_json(request_cls, body or b"{}")
        except ValueError as exc:
            return self._error(
                start_response,
                ConnectError(Code.INVALID_ARGUMENT, f"unmarshal into {request_cls.__name__}: {exc}"),
            )

        info = RequestInfo(procedure=path, peer=self._peer(environ))
        try:
            response = self._calls[path](info, request)
        except ConnectError as exc:
            return self._error(start_response, exc)
        except Exception as exc:
            return self._error(start_response, ConnectError(Code.UNKNOWN, str(exc)))
        return self._respond(start_response, 200, to_json(response).encode(), _JSON)


class UnimplementedTodoService:
    """A service whose every procedure fails with the unimplemented code."""

    def create_todo(self, request: CreateTodoRequest) -> CreateTodoResponse:
        raise ConnectError(Code.UNIMPLEMENTED, "todo.v1.TodoService.CreateTodo is not implemented")

    def update_todo(self, request: UpdateTodoRequest) -> UpdateTodoResponse:
        raise ConnectError(Code.UNIMPLEMENTED, "todo.v1.TodoService.UpdateTodo is not implemented")

    def delete_todo(self, request: DeleteTodoRequest) -> DeleteTodoResponse:
        raise ConnectError(Code.UNIMPLEMENTED, "todo.v1.TodoService.DeleteTodo is not implemented")

    def list_todos(self, request: ListTodosRequest) -> ListTodosResponse:
        raise ConnectError(Code.UNIMPLEMENTED, "todo.v1.TodoService.ListTodos is not implemented")


def new_todo_service_handler(service: Any, *args: Interceptor) -> tuple[str, TodoServiceApp]:
    """Return the path prefix to mount at and the WSGI app serving ``service``."""
    return SERVICE_PATH, TodoServiceApp(service, args)