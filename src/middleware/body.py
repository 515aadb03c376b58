"""JSON and urlencoded body decoding stages.

Parsed bodies land in request.state.body. Requests whose media type
matches neither stage keep the default empty object.
"""

import json
import math

from src.middleware.formparser import parse_nested_form
from src.middleware.pipeline import Exchange, Stage, StageError

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


def _read_limited(exchange: Exchange, limit: int) -> bytes:
    body = exchange.body()
    if len(body) > limit:
        raise StageError(413, "request entity too large")
    return body


def _reject_constant(token: str) -> float:
    raise StageError(400, "Malformed JSON body")


def _finite_float(token: str) -> float:
    value = float(token)
    if math.isinf(value):
        raise StageError(400, "Malformed JSON body")
    return value


def json_body_stage(limit: int) -> Stage:
    async def parse_json_body(exchange: Exchange) -> None:
        if exchange.media_type != JSON_MEDIA_TYPE:
            return None

        body = _read_limited(exchange, limit)
        try:
            text = body.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise StageError(400, "Malformed JSON body") from e

        stripped = text.strip(" \t\r\n")
        if not stripped:
            return None
        # Only objects and arrays are accepted at the top level
        if stripped[0] not in "{[":
            raise StageError(400, "Malformed JSON body")
        try:
            exchange.state["body"] = json.loads(
                stripped, parse_constant=_reject_constant, parse_float=_finite_float,
            )
        # ValueError covers JSONDecodeError and oversized integer literals
        except (ValueError, RecursionError) as e:
            raise StageError(400, "Malformed JSON body") from e
        return None

    return parse_json_body


def form_body_stage(limit: int, parameter_limit: int, depth: int, array_limit: int) -> Stage:
    async def parse_form_body(exchange: Exchange) -> None:
        if exchange.media_type != FORM_MEDIA_TYPE:
            return None

        text = _read_limited(exchange, limit).decode("utf-8", errors="replace")
        if not text:
            return None
        if text.count("&") + 1 > parameter_limit:
            raise StageError(413, "too many parameters")

        exchange.state["body"] = parse_nested_form(text, depth=depth, array_limit=array_limit)
        return None

    return parse_form_body
