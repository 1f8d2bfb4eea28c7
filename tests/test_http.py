from __future__ import annotations

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from poolwright.infra.http import BearerAuth, HttpClient, HttpError

pytestmark = [pytest.mark.unit]

TOKEN = "valid-token"


class RotatingAuth:
    """Hands out a stale token until told about a 401."""

    def __init__(self) -> None:
        self.token = "stale"
        self.refreshes = 0

    async def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def on_401(self) -> None:
        self.refreshes += 1
        self.token = TOKEN


class AlwaysStaleAuth(RotatingAuth):
    async def on_401(self) -> None:
        self.refreshes += 1


def make_app() -> web.Application:
    app = web.Application()

    async def echo(request: web.Request) -> web.Response:
        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return web.Response(status=401, text="Unauthorized")
        body = await request.json() if request.can_read_body else None
        return web.json_response({
            "method": request.method,
            "body": body,
            "query": dict(request.query),
            "content_type": request.headers.get("Content-Type"),
        })

    async def readyz(_: web.Request) -> web.Response:
        return web.Response(text="ok")

    async def no_content(_: web.Request) -> web.Response:
        return web.Response(status=204)

    async def missing(_: web.Request) -> web.Response:
        return web.json_response({"kind": "Status", "reason": "NotFound", "code": 404}, status=404)

    async def broken(_: web.Request) -> web.Response:
        return web.Response(status=503, text="etcdserver: leader changed")

    async def not_json(_: web.Request) -> web.Response:
        return web.Response(text="<html>login required</html>", content_type="text/html")

    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/readyz", readyz)
    app.router.add_delete("/no-content", no_content)
    app.router.add_get("/missing", missing)
    app.router.add_get("/broken", broken)
    app.router.add_get("/not-json", not_json)
    return app


@pytest.fixture
async def server():
    srv = TestServer(make_app())
    await srv.start_server()
    yield srv
    await srv.close()


@pytest.fixture
def base_url(server: TestServer) -> str:
    return f"http://{server.host}:{server.port}/"


class TestRequests:
    @pytest.mark.asyncio
    async def test_get_sends_query_and_bearer(self, base_url: str):
        async with HttpClient(base_url, BearerAuth(TOKEN)) as http:
            result = await http.get("/echo", params={"limit": 500})
        assert result["method"] == "GET"
        assert result["query"] == {"limit": "500"}

    @pytest.mark.asyncio
    async def test_post_json_with_default_headers(self, base_url: str):
        async with HttpClient(
            base_url, BearerAuth(TOKEN), default_headers={"Content-Type": "application/json"},
        ) as http:
            result = await http.post("/echo", {"metadata": {"name": "pool-payments"}})
        assert result["body"] == {"metadata": {"name": "pool-payments"}}
        assert result["content_type"] == "application/json"

    @pytest.mark.asyncio
    async def test_text_body(self, base_url: str):
        async with HttpClient(base_url) as http:
            assert await http.get_text("/readyz") == "ok"

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, base_url: str):
        async with HttpClient(base_url) as http:
            assert await http.request("DELETE", "/no-content") is None

    def test_base_url_trailing_slash_stripped(self):
        assert HttpClient("http://k8s.local:6443/").base_url == "http://k8s.local:6443"


class TestErrors:
    @pytest.mark.asyncio
    async def test_client_error_keeps_status_body(self, base_url: str):
        async with HttpClient(base_url) as http:
            with pytest.raises(HttpError) as excinfo:
                await http.get("/missing")
        assert excinfo.value.status == 404
        assert '"reason": "NotFound"' in excinfo.value.body

    @pytest.mark.asyncio
    async def test_server_error(self, base_url: str):
        async with HttpClient(base_url) as http:
            with pytest.raises(HttpError) as excinfo:
                await http.get("/broken")
        assert excinfo.value.status == 503
        assert str(excinfo.value) == "HTTP 503: etcdserver: leader changed"

    @pytest.mark.asyncio
    async def test_non_json_success_body_is_an_error(self, base_url: str):
        async with HttpClient(base_url) as http:
            with pytest.raises(HttpError) as excinfo:
                await http.get("/not-json")
        assert excinfo.value.status == 200
        assert "invalid JSON" in excinfo.value.body

    @pytest.mark.asyncio
    async def test_unreachable_host_is_status_zero(self):
        async with HttpClient("http://127.0.0.1:1", timeout=2) as http:
            with pytest.raises(HttpError) as excinfo:
                await http.get_text("/readyz")
        assert excinfo.value.status == 0


class TestUnauthorized:
    @pytest.mark.asyncio
    async def test_reloads_credentials_and_retries_once(self, base_url: str):
        auth = RotatingAuth()
        async with HttpClient(base_url, auth) as http:
            result = await http.post("/echo", {"n": 1})
        assert result["body"] == {"n": 1}
        assert auth.refreshes == 1

    @pytest.mark.asyncio
    async def test_second_401_is_an_error(self, base_url: str):
        auth = AlwaysStaleAuth()
        async with HttpClient(base_url, auth) as http:
            with pytest.raises(HttpError) as excinfo:
                await http.get("/echo")
        assert excinfo.value.status == 401
        assert auth.refreshes == 1

    @pytest.mark.asyncio
    async def test_without_auth_401_is_an_error(self, base_url: str):
        async with HttpClient(base_url) as http:
            with pytest.raises(HttpError) as excinfo:
                await http.get("/echo")
        assert excinfo.value.status == 401


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_session_is_lazy_and_close_is_idempotent(self, base_url: str):
        http = HttpClient(base_url)
        assert http._session is None
        await http.get_text("/readyz")
        assert http._session is not None
        await http.close()
        await http.close()
        assert http._session is None
