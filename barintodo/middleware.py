"""Interceptor that logs each service call with its outcome and duration."""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

UnaryCall = Callable[["RequestInfo", Any], Any]


@dataclass(frozen=True)
class RequestInfo:
    """What is known about an incoming call: the procedure and the caller's address."""

    procedure: str
    peer: str = ""


def logging_interceptor() -> Callable[[UnaryCall], UnaryCall]:
    """Return an interceptor that logs the start, failure or completion of each call."""

    def interceptor(next_call: UnaryCall) -> UnaryCall:
        @functools.wraps(next_call)
        def call(info: RequestInfo, request: Any) -> Any:
            start = time.monotonic()
            logger.info(
                "gRPC request started procedure=%s peer=%s",
                info.procedure,
                info.peer,
                extra={"procedure": info.procedure, "peer": info.peer},
            )
            try:
                response = next_call(info, request)
            except Exception as exc:
                duration = time.monotonic() - start
                logger.error(
                    "gRPC request failed procedure=%s peer=%s error=%s duration=%.6fs",
                    info.procedure,
                    info.peer,
                    exc,
                    duration,
                    extra={
                        "procedure": info.procedure,
                        "peer": info.peer,
                        "error": str(exc),
                        "duration": duration,
                    },
                )
                raise
            duration = time.monotonic() - start
            logger.info(
                "gRPC request completed procedure=%s peer=%s duration=%.6fs",
                info.procedure,
                info.peer,
                duration,
                extra={"procedure": info.procedure, "peer": info.peer, "duration": duration},
            )
            return response

        return call

    return interceptor