from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlsplit

import pytest
from aiohttp.test_utils import TestClient, TestServer

from streamrelay.oauth import Identity
from streamrelay.webserver import WebServer


def same_url(a, b):
    """ Equal up to percent-encoding of the query string """
    a, b = urlsplit(a), urlsplit(b)
    return a[:3] == b[:3] and parse_qs(a.query) == parse_qs(b.query)


@pytest.mark.parametrize("uri,expected", [
    ("http://localhost:3030/oauth", ("localhost", 3030, "/oauth")),
    ("https://overlay.example.com/twitch/callback", ("overlay.example.com", 443, "/twitch/callback")),
    ("http://127.0.0.1", ("127.0.0.1", 80, "/")),
])
def test_for_redirect_uri(uri, expected):
    server = WebServer.for_redirect_uri(uri)
    assert (server.host, server.port, server.oauth_path) == expected


def test_for_redirect_uri_without_host():
    with pytest.raises(ValueError):
        WebServer.for_redirect_uri("/oauth")


@pytest.mark.asyncio
async def test_oauth_routes(relay, monkeypatch):
    monkeypatch.setattr("streamrelay.oauth.exchange_code", AsyncMock(return_value={"access_token": "A", "refresh_token": "B"}))
    server = WebServer.for_redirect_uri("http://localhost:3030/twitch/oauth")
    relay.setup_routes(server)
    async with TestClient(TestServer(server.app)) as client:
        resp = await client.get("/login", allow_redirects=False)
        assert resp.status == 302
        assert same_url(resp.headers["Location"], relay.get_redirect_url())

        resp = await client.get("/twitch/oauth")
        assert resp.status == 400

        resp = await client.get("/twitch/oauth", params={"code": "the-code"})
        assert resp.status == 200
        assert "Logged in" in await resp.text()
    assert relay.sessions[Identity.BROADCASTER].access_token == "A"


@pytest.mark.asyncio
async def test_add_route_while_running():
    server = WebServer('127.0.0.1', 0)
    async with server:
        assert server.running
        with pytest.raises(RuntimeError):
            server.add_route("/late", AsyncMock())
    assert not server.running
