"""Tests for src/middleware/pipeline.py: stage ordering and short-circuits."""

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from src.middleware.pipeline import RequestPipelineMiddleware, StageError
from tests.conftest import make_exchange


async def echo(request: Request):
    raw = await request.body()
    return JSONResponse({
        "raw": raw.decode(),
        "body": request.state.body,
        "content_encoding": request.headers.get("content-encoding"),
        "content_length": request.headers.get("content-length"),
    })


def make_client(stages):
    app = Starlette(routes=[Route("/echo", echo, methods=["GET", "POST"])])
    wrapped = RequestPipelineMiddleware(app, stages)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=wrapped), base_url="http://test")


class TestStageOrdering:

    async def test_stages_run_in_order(self):
        seen = []

        def recorder(name):
            async def stage(exchange):
                seen.append(name)
            return stage

        async with make_client([recorder("a"), recorder("b"), recorder("c")]) as client:
            resp = await client.get("/echo")
        assert resp.status_code == 200
        assert seen == ["a", "b", "c"]

    async def test_short_circuit_skips_rest(self):
        seen = []

        async def first(exchange):
            exchange.response_headers["x-first"] = "1"
            return Response(status_code=418)

        async def second(exchange):
            seen.append("second")

        async with make_client([first, second]) as client:
            resp = await client.get("/echo")
        assert resp.status_code == 418
        assert resp.headers["x-first"] == "1"
        assert seen == []

    async def test_stage_error_renders_json(self):
        async def headers(exchange):
            exchange.response_headers["x-seen"] = "yes"

        async def reject(exchange):
            raise StageError(413, "too big")

        async with make_client([headers, reject]) as client:
            resp = await client.post("/echo", content=b"x")
        assert resp.status_code == 413
        assert resp.json() == {"error": "too big"}
        assert resp.headers["x-seen"] == "yes"

    async def test_stage_crash_renders_500(self):
        seen = []

        async def headers(exchange):
            exchange.response_headers["access-control-allow-origin"] = "*"

        async def crash(exchange):
            raise RuntimeError("boom")

        async def after(exchange):
            seen.append("after")

        async with make_client([headers, crash, after]) as client:
            resp = await client.post("/echo", content=b"x")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "x-request-id" in resp.headers
        assert seen == []


class TestBodyReplay:

    async def test_app_sees_original_body(self):
        async with make_client([]) as client:
            resp = await client.post("/echo", content=b"hello")
        assert resp.json()["raw"] == "hello"
        assert resp.json()["body"] == {}

    async def test_app_sees_decoded_body(self):
        async def upper(exchange):
            exchange.content_decoder = lambda body: body.upper()

        async with make_client([upper]) as client:
            resp = await client.post(
                "/echo", content=b"hello", headers={"content-encoding": "shout"},
            )
        data = resp.json()
        assert data["raw"] == "HELLO"
        assert data["content_encoding"] is None
        assert data["content_length"] == "5"

    async def test_decoder_error_after_stages(self):
        async def broken(exchange):
            def decode(body):
                raise StageError(400, "bad body")
            exchange.content_decoder = decode

        async with make_client([broken]) as client:
            resp = await client.post("/echo", content=b"x")
        assert resp.status_code == 400
        assert resp.json() == {"error": "bad body"}


class TestResponseHeaders:

    async def test_request_id_added(self):
        async with make_client([]) as client:
            resp = await client.get("/echo")
        assert "x-request-id" in resp.headers

    async def test_vary_is_appended(self):
        async def vary(exchange):
            exchange.response_headers["vary"] = "Origin"

        async with make_client([vary]) as client:
            resp = await client.get("/echo")
        assert "Origin" in resp.headers["vary"]


class TestExchange:

    def test_media_type_strips_parameters(self):
        exchange = make_exchange(headers={"Content-Type": "Application/JSON; charset=utf-8"})
        assert exchange.media_type == "application/json"

    def test_media_type_missing(self):
        assert make_exchange().media_type == ""

    def test_body_decoded_once(self):
        calls = []
        exchange = make_exchange(body=b"abc")

        def decode(body):
            calls.append(body)
            return body[::-1]

        exchange.content_decoder = decode
        assert exchange.body() == b"cba"
        assert exchange.body() == b"cba"
        assert calls == [b"abc"]

    def test_state_defaults_body(self):
        exchange = make_exchange()
        assert exchange.state["body"] == {}
        assert exchange.scope["state"] is exchange.state

    def test_stage_error_fields(self):
        err = StageError(415, "nope")
        assert err.status_code == 415
        assert str(err) == "nope"
        with pytest.raises(StageError):
            raise err
