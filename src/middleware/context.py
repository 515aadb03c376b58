"""Attaches the Lambda invocation event and context to each request.

Under Mangum the event and context arrive in the ASGI scope. Running
behind a plain HTTP server they may instead come in as URL-encoded JSON
headers, which are stripped once read.
"""

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

from src.logging.access import get_logger, request_id_var
from src.middleware.pipeline import Exchange, StageError

EVENT_HEADER = "x-apigateway-event"
CONTEXT_HEADER = "x-apigateway-context"


@dataclass
class InvocationContext:
    event: dict = field(default_factory=dict)  # raw gateway event
    context: Any = None  # Lambda context object (or dict from headers)

    @property
    def request_id(self) -> str:
        if isinstance(self.context, dict):
            rid = self.context.get("awsRequestId", "")
        else:
            rid = getattr(self.context, "aws_request_id", "")
        if rid:
            return rid
        request_context = self.event.get("requestContext") or {}
        return request_context.get("requestId", "")

    @property
    def function_name(self) -> str:
        if isinstance(self.context, dict):
            return self.context.get("functionName", "")
        return getattr(self.context, "function_name", "") or ""


def _decode_header(exchange: Exchange, name: str) -> Any:
    raw = exchange.headers.get(name)
    if raw is None:
        return None
    try:
        return json.loads(unquote(raw))
    except json.JSONDecodeError as e:
        raise StageError(400, f"Malformed {name} header") from e


async def attach_invocation_context(exchange: Exchange) -> None:
    event = exchange.scope.get("aws.event")
    context = exchange.scope.get("aws.context")

    if event is None:
        event = _decode_header(exchange, EVENT_HEADER)
        context = _decode_header(exchange, CONTEXT_HEADER)
        del exchange.headers[EVENT_HEADER]
        del exchange.headers[CONTEXT_HEADER]
        if event is None:
            get_logger("context").debug("No invocation event on request")

    invocation = InvocationContext(event=event if isinstance(event, dict) else {}, context=context)
    exchange.state["invocation"] = invocation

    if invocation.request_id:
        exchange.request_id = invocation.request_id
        request_id_var.set(invocation.request_id)
    return None
