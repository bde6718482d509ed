import asyncio
import threading
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest
from aiohttp import web
from aiohttp import test_utils

from sciurus.config.store import JsonConfig
from sciurus.objectstore.onedrive import (
    AuthorizationRequired,
    OneDriveClient,
    TokenError,
)

TOKEN_REPLY = {
    "user_id": "user-1",
    "expires_in": 3600,
    "access_token": "access-1",
    "refresh_token": "refresh-2",
}


def run_access_test(config, reply, status=200, lock=None):
    """Run access_test against a local token endpoint; returns (client, requests)."""
    requests = []

    async def token(request):
        requests.append(dict(await request.post()))
        if status != 200:
            return web.Response(status=status, text="denied")
        return web.json_response(reply)

    async def runner():
        app = web.Application()
        app.router.add_post("/token", token)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            client = OneDriveClient(
                "client-id", config, lock=lock, token_url=str(server.make_url("/token"))
            )
            await client.access_test()
            return client, requests
        finally:
            await server.close()

    return asyncio.run(runner())


def test_missing_code_requests_authorization(tmp_path: Path):
    config = JsonConfig(tmp_path / "config.json", auto_save=True)
    with pytest.raises(AuthorizationRequired) as excinfo:
        run_access_test(config, TOKEN_REPLY)

    url = excinfo.value.url
    assert config.get_string("onedrive.code") == url
    parts = urlsplit(url)
    assert parts.netloc == "login.live.com"
    query = parse_qs(parts.query)
    assert query["client_id"] == ["client-id"]
    assert query["scope"] == ["onedrive.readwrite offline_access"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://login.live.com/oauth20_desktop.srf"]


def test_code_is_exchanged_for_tokens(tmp_path: Path):
    path = tmp_path / "config.json"
    config = JsonConfig(path, auto_save=True)
    config.set("onedrive.code", "auth-code")

    client, requests = run_access_test(config, TOKEN_REPLY)

    assert requests == [{
        "client_id": "client-id",
        "redirect_uri": "https://login.live.com/oauth20_desktop.srf",
        "grant_type": "authorization_code",
        "code": "auth-code",
    }]
    assert client.access_token == "access-1"
    assert client.user_id == "user-1"
    assert client.expires_in == 3600
    assert config.get("onedrive.code") is None

    reloaded = JsonConfig(path)
    reloaded.load()
    assert reloaded.get_string("onedrive.refresh_token") == "refresh-2"
    assert reloaded.get("onedrive.code") is None


def test_rejected_code_requests_authorization_again(tmp_path: Path):
    config = JsonConfig(tmp_path / "config.json")
    config.set("onedrive.code", "stale-code")

    with pytest.raises(AuthorizationRequired) as excinfo:
        run_access_test(config, TOKEN_REPLY, status=400)
    assert config.get_string("onedrive.code") == excinfo.value.url
    assert config.get("onedrive.refresh_token") is None


def test_refresh_token_is_used(tmp_path: Path):
    config = JsonConfig(tmp_path / "config.json")
    config.set("onedrive.refresh_token", "refresh-1")
    lock = threading.RLock()

    client, requests = run_access_test(config, TOKEN_REPLY, lock=lock)

    assert requests[0]["grant_type"] == "refresh_token"
    assert requests[0]["refresh_token"] == "refresh-1"
    assert client.refresh_token == "refresh-2"
    assert config.get_string("onedrive.refresh_token") == "refresh-2"


def test_refresh_failure_raises_token_error(tmp_path: Path):
    config = JsonConfig(tmp_path / "config.json")
    config.set("onedrive.refresh_token", "refresh-1")

    with pytest.raises(TokenError):
        run_access_test(config, TOKEN_REPLY, status=401)
    assert config.get_string("onedrive.refresh_token") == "refresh-1"


@pytest.mark.parametrize("reply", [
    {"user_id": "u", "access_token": "a", "refresh_token": "r"},
    {**TOKEN_REPLY, "expires_in": "soon"},
    {**TOKEN_REPLY, "access_token": 1},
    ["not", "an", "object"],
])
def test_bad_token_reply_raises_token_error(tmp_path: Path, reply):
    config = JsonConfig(tmp_path / "config.json")
    config.set("onedrive.refresh_token", "refresh-1")

    with pytest.raises(TokenError):
        run_access_test(config, reply)
    assert config.get_string("onedrive.refresh_token") == "refresh-1"
