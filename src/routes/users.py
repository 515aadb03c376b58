"""Route handlers for /users.

Both handlers read what the pipeline left on request.state: the parsed
body and the invocation context. Any crash inside a handler becomes a
plain 500 via SafeRoute.
"""

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException
from starlette.responses import Response

from src.logging.access import get_logger
from src.middleware.context import InvocationContext
from src.users.factory import get_user_store
from src.users.models import UserValidationError, new_user
from src.users.store import UserStore


class SafeRoute(APIRoute):
    """APIRoute that converts unexpected handler errors into a generic 500."""

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def handler(request: Request) -> Response:
            try:
                return await original_handler(request)
            except (HTTPException, RequestValidationError):
                raise
            except Exception:
                get_logger("routes").exception(
                    "Handler failed",
                    extra={"log_data": {"method": request.method, "path": request.url.path}},
                )
                return JSONResponse(status_code=500, content={"error": "Internal server error"})

        return handler


router = APIRouter(route_class=SafeRoute)


def parsed_body(request: Request) -> Any:
    return getattr(request.state, "body", {})


def invocation_context(request: Request) -> InvocationContext:
    return getattr(request.state, "invocation", None) or InvocationContext()


@router.get("/users")
async def list_users(store: UserStore = Depends(get_user_store)):
    users = await store.list_users()
    return {"users": [user.to_dict() for user in users]}


@router.post("/users", status_code=201)
async def create_user(
    body: Any = Depends(parsed_body),
    invocation: InvocationContext = Depends(invocation_context),
    store: UserStore = Depends(get_user_store),
):
    logger = get_logger("users")

    try:
        user = new_user(body)
    except UserValidationError as e:
        logger.warning("User rejected", extra={"log_data": {"reason": str(e)}})
        return JSONResponse(status_code=400, content={"error": str(e)})

    await store.create_user(user)

    logger.info(
        "User created",
        extra={"log_data": {
            "user_id": user.user_id,
            "function_name": invocation.function_name,
        }},
    )
    return JSONResponse(status_code=201, content=user.to_dict())
