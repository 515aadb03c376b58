"""Ordered request pipeline run in front of the router.

Each stage is an async callable taking the `Exchange` for the current
request. A stage returns None to hand over to the next stage, returns a
Response to answer the request itself, or raises `StageError`. Headers a
stage puts in `exchange.response_headers` go out on every response,
short-circuits and errors included.

Pipeline: read body -> stages in order -> decode body -> app -> merge headers -> log
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.logging.access import RequestTimer, generate_request_id, get_logger, request_id_var

ContentDecoder = Callable[[bytes], bytes]


class StageError(Exception):
    """A stage rejected the request; rendered as {"error": message}."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class Exchange:
    """Mutable view of one request as it moves through the stages."""

    def __init__(self, scope: Scope, raw_body: bytes):
        self.scope = scope
        # Writes go straight into scope["headers"]
        self.headers = MutableHeaders(scope=scope)
        self.raw_body = raw_body
        self.content_decoder: ContentDecoder | None = None
        self.response_headers = MutableHeaders()
        self.request_id = generate_request_id()
        # Backs request.state for the route handlers
        self.state: dict[str, Any] = scope.setdefault("state", {})
        self.state["body"] = {}
        self._body: bytes | None = None

    @property
    def method(self) -> str:
        return self.scope["method"]

    @property
    def path(self) -> str:
        return self.scope["path"]

    @property
    def media_type(self) -> str:
        content_type = self.headers.get("content-type", "")
        return content_type.split(";", 1)[0].strip().lower()

    def body(self) -> bytes:
        """Request body, run through the content decoder on first read."""
        if self._body is None:
            body = self.raw_body
            if self.content_decoder is not None:
                body = self.content_decoder(body)
                del self.headers["content-encoding"]
                self.headers["content-length"] = str(len(body))
            self._body = body
        return self._body


Stage = Callable[[Exchange], Awaitable[Response | None]]


class RequestPipelineMiddleware:
    """Pure ASGI middleware running a fixed list of stages per request."""

    def __init__(self, app: ASGIApp, stages: Sequence[Stage]) -> None:
        self.app = app
        self.stages = tuple(stages)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        logger = get_logger("access")
        exchange = Exchange(scope, await _read_body(receive))
        token = request_id_var.set(exchange.request_id)
        status_code = 500

        async def send_with_headers(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                for key, value in exchange.response_headers.items():
                    if key == "vary":
                        headers.add_vary_header(value)
                    else:
                        headers[key] = value
                headers["x-request-id"] = exchange.request_id
            await send(message)

        try:
            with RequestTimer() as timer:
                response = await self._run_stages(exchange)
                if response is not None:
                    await response(scope, receive, send_with_headers)
                else:
                    await self.app(scope, _replay(exchange.body(), receive), send_with_headers)
        finally:
            logger.info(
                "Request handled",
                extra={"log_data": {
                    "method": exchange.method,
                    "path": exchange.path,
                    "status": status_code,
                    "latency_ms": timer.elapsed_ms,
                }},
            )
            request_id_var.reset(token)

    async def _run_stages(self, exchange: Exchange) -> Response | None:
        try:
            for stage in self.stages:
                response = await stage(exchange)
                if response is not None:
                    return response
            # Decode now so a bad body never reaches the app
            exchange.body()
        except StageError as e:
            get_logger("access").warning(
                "Request rejected",
                extra={"log_data": {
                    "method": exchange.method,
                    "path": exchange.path,
                    "status": e.status_code,
                    "reason": e.message,
                }},
            )
            return JSONResponse(status_code=e.status_code, content={"error": e.message})
        except Exception:
            get_logger("access").exception(
                "Stage failed",
                extra={"log_data": {"method": exchange.method, "path": exchange.path}},
            )
            return JSONResponse(status_code=500, content={"error": "Internal server error"})
        return None


async def _read_body(receive: Receive) -> bytes:
    chunks = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def _replay(body: bytes, receive: Receive) -> Receive:
    """Hand the already-read body to the app once, then defer to the server."""
    sent = False

    async def replay_receive() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay_receive
