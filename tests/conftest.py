"""Shared fixtures for the users API test suite."""

import json
from types import SimpleNamespace

import httpx
import pytest

import src.users.factory as factory_mod
from src.config.settings import get_settings


@pytest.fixture(autouse=True)
def reset_user_store(monkeypatch):
    """Each test starts with no store singleton."""
    monkeypatch.setattr(factory_mod, "_store", None)
    yield
    monkeypatch.setattr(factory_mod, "_store", None)


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(USER_STORE_BACKEND="json", JSON_BODY_LIMIT="64")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()


@pytest.fixture
def users_json_file(tmp_path):
    """Create a temp users.json with two users and return its path."""
    data = {
        "users": [
            {
                "user_id": "u-1",
                "name": "Ada",
                "created_at": "2024-01-01T00:00:00+00:00",
                "email": "ada@example.com",
            },
            {
                "user_id": "u-2",
                "name": "Grace",
                "created_at": "2024-01-02T00:00:00+00:00",
            },
        ]
    }
    path = tmp_path / "users.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def app_client(override_settings):
    """httpx AsyncClient wired to a freshly built app with an in-memory store."""
    override_settings(USER_STORE_BACKEND="memory")
    from src.main import create_app

    transport = httpx.ASGITransport(app=create_app())
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture
def lambda_context():
    return SimpleNamespace(aws_request_id="lambda-req-0001", function_name="users-api")


def make_http_event(method="GET", path="/users", body=None, headers=None,
                    query="", is_base64=False) -> dict:
    """Minimal API Gateway HTTP API (v2) event."""
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": path,
        "rawQueryString": query,
        "headers": {"host": "abc123.execute-api.us-east-1.amazonaws.com", **(headers or {})},
        "requestContext": {
            "accountId": "123456789012",
            "apiId": "abc123",
            "domainName": "abc123.execute-api.us-east-1.amazonaws.com",
            "http": {
                "method": method,
                "path": path,
                "protocol": "HTTP/1.1",
                "sourceIp": "203.0.113.10",
                "userAgent": "pytest",
            },
            "requestId": "gateway-req-0001",
            "routeKey": "$default",
            "stage": "$default",
        },
        "body": body,
        "isBase64Encoded": is_base64,
    }


def make_exchange(method="GET", path="/users", headers=None, body=b"", **scope_extra):
    """Build a pipeline Exchange over a synthetic ASGI http scope."""
    from src.middleware.pipeline import Exchange

    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in (headers or {}).items()
        ],
        **scope_extra,
    }
    return Exchange(scope, body)
