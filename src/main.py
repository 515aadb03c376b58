"""Users API: FastAPI application entry point.

A minimal users service (GET/POST /users) meant to run on AWS Lambda
behind API Gateway, fronted by a fixed request pipeline.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware

from src.config.settings import Settings, get_settings
from src.logging.access import get_logger, setup_logging
from src.middleware.body import form_body_stage, json_body_stage
from src.middleware.compression import decompress_body
from src.middleware.context import attach_invocation_context
from src.middleware.cors import cors_stage
from src.middleware.pipeline import RequestPipelineMiddleware, Stage
from src.routes.users import router as users_router

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown hooks (local servers only; Lambda runs with lifespan off)."""
    setup_logging()
    get_logger().info("Users API started")
    yield
    get_logger().info("Users API stopped")


def build_stages(settings: Settings) -> list[Stage]:
    """Pipeline: Decompress -> CORS -> JSON body -> Form body -> Invocation context"""
    return [
        decompress_body,
        cors_stage(settings.cors_methods_list, settings.cors_max_age),
        json_body_stage(settings.json_body_limit),
        form_body_stage(
            settings.form_body_limit,
            settings.form_parameter_limit,
            settings.form_depth,
            settings.form_array_limit,
        ),
        attach_invocation_context,
    ]


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # No route is registered for other methods on /users either
    if exc.status_code == 405:
        return JSONResponse(status_code=404, content={"error": "Not Found"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Users API",
        description="List and create users",
        version=VERSION,
        lifespan=lifespan,
        redirect_slashes=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(users_router)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Last added runs first: gzip wraps the whole pipeline
    app.add_middleware(RequestPipelineMiddleware, stages=build_stages(settings))
    app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_minimum_size)
    return app


app = create_app()
