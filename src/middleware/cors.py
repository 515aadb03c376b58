"""Permissive cross-origin headers.

Any origin is allowed, with or without an Origin header on the request.
Every OPTIONS request is treated as a preflight and answered here with
204 and no body, whatever the path.
"""

from collections.abc import Sequence

from starlette.responses import Response

from src.middleware.pipeline import Exchange, Stage


def cors_stage(allow_methods: Sequence[str], max_age: int = 0) -> Stage:
    methods = ",".join(allow_methods)

    async def apply_cors(exchange: Exchange) -> Response | None:
        exchange.response_headers["access-control-allow-origin"] = "*"
        if exchange.method != "OPTIONS":
            return None

        headers = {
            "access-control-allow-methods": methods,
            "content-length": "0",
        }
        requested = exchange.headers.get("access-control-request-headers")
        if requested:
            headers["access-control-allow-headers"] = requested
            exchange.response_headers["vary"] = "Access-Control-Request-Headers"
        if max_age:
            headers["access-control-max-age"] = str(max_age)
        return Response(status_code=204, headers=headers)

    return apply_cors
