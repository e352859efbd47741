import json

import httpx
import pytest

from pwforge.backends.supabase import SupabaseBackend
from pwforge.config import BackendSettings
from pwforge.models import AuthSession, User

URL = "https://project.supabase.test"
KEY = "anon-key"

USER = {"id": "u-1", "email": "alice@example.com", "aud": "authenticated"}
SESSION_BODY = {
    "access_token": "jwt-token",
    "token_type": "bearer",
    "expires_in": 3600,
    "expires_at": 1900000000,
    "refresh_token": "refresh",
    "user": USER,
}
ROW = {
    "id": "row-1",
    "user_id": "u-1",
    "password_text": "Abc123!@#",
    "label": "Gmail",
    "created_at": "2025-03-01T10:00:00+00:00",
}


def make_backend(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseBackend(URL, KEY, client=client)


def session():
    return AuthSession(access_token="jwt-token", user=User(id="u-1", email="alice@example.com"))


@pytest.mark.asyncio
async def test_sign_in_posts_password_grant():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=SESSION_BODY)

    backend = make_backend(handler)
    res = await backend.sign_in("alice@example.com", "pw")

    assert res.ok
    assert res.value.access_token == "jwt-token"
    assert res.value.user.id == "u-1"
    assert seen["url"].path == "/auth/v1/token"
    assert seen["url"].params["grant_type"] == "password"
    assert seen["headers"]["apikey"] == KEY
    assert seen["body"] == {"email": "alice@example.com", "password": "pw"}


@pytest.mark.asyncio
async def test_sign_in_error_uses_provider_message():
    def handler(request):
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}
        )

    res = await make_backend(handler).sign_in("alice@example.com", "bad")
    assert not res.ok
    assert res.error == "Invalid login credentials"


@pytest.mark.asyncio
async def test_sign_in_validates_before_request():
    def handler(request):
        raise AssertionError("no request expected")

    res = await make_backend(handler).sign_in("nope", "pw")
    assert not res.ok


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation_returns_none():
    def handler(request):
        assert request.url.path == "/auth/v1/signup"
        return httpx.Response(200, json=USER)

    res = await make_backend(handler).sign_up("alice@example.com", "pw")
    assert res.ok
    assert res.value is None


@pytest.mark.asyncio
async def test_sign_up_with_immediate_session():
    res = await make_backend(lambda r: httpx.Response(200, json=SESSION_BODY)).sign_up(
        "alice@example.com", "pw"
    )
    assert res.ok
    assert res.value.user.email == "alice@example.com"


@pytest.mark.asyncio
async def test_sign_up_error_message_from_msg_field():
    def handler(request):
        return httpx.Response(422, json={"code": 422, "msg": "User already registered"})

    res = await make_backend(handler).sign_up("alice@example.com", "pw")
    assert res.error == "User already registered"


@pytest.mark.asyncio
async def test_sign_up_non_json_body():
    res = await make_backend(lambda r: httpx.Response(200, text="<html>ok</html>")).sign_up(
        "alice@example.com", "pw"
    )
    assert not res.ok
    assert res.error.startswith("Unexpected sign-up response")


@pytest.mark.asyncio
async def test_sign_out_sends_bearer_token():
    def handler(request):
        assert request.url.path == "/auth/v1/logout"
        assert request.headers["authorization"] == "Bearer jwt-token"
        return httpx.Response(204)

    assert (await make_backend(handler).sign_out(session())).ok


@pytest.mark.asyncio
async def test_list_passwords_filters_and_orders():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/passwords"
        assert request.url.params["user_id"] == "eq.u-1"
        assert request.url.params["order"] == "created_at.desc"
        return httpx.Response(200, json=[ROW])

    res = await make_backend(handler).list_passwords(session())
    assert res.ok
    (record,) = res.value
    assert record.text == "Abc123!@#"
    assert record.owner == "u-1"
    assert record.label == "Gmail"


@pytest.mark.asyncio
async def test_insert_password_returns_row():
    def handler(request):
        assert request.method == "POST"
        assert request.headers["prefer"] == "return=representation"
        body = json.loads(request.content)
        assert body == {"user_id": "u-1", "password_text": "Abc123!@#", "label": None}
        return httpx.Response(201, json=[{**ROW, "label": None}])

    res = await make_backend(handler).insert_password(session(), "Abc123!@#", "")
    assert res.ok
    assert res.value.id == "row-1"
    assert res.value.label is None


@pytest.mark.asyncio
async def test_delete_password_filters_on_owner():
    def handler(request):
        assert request.method == "DELETE"
        assert request.url.params["id"] == "eq.row-1"
        assert request.url.params["user_id"] == "eq.u-1"
        return httpx.Response(200, json=[ROW])

    assert (await make_backend(handler).delete_password(session(), "row-1")).ok


@pytest.mark.asyncio
async def test_delete_of_invisible_row_fails():
    res = await make_backend(lambda r: httpx.Response(200, json=[])).delete_password(
        session(), "someone-elses"
    )
    assert not res.ok
    assert res.error == "Password not found."


@pytest.mark.asyncio
async def test_transport_error_becomes_failure():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    res = await make_backend(handler).list_passwords(session())
    assert not res.ok
    assert "Network error" in res.error


@pytest.mark.asyncio
async def test_non_json_error_body():
    res = await make_backend(lambda r: httpx.Response(502, text="bad gateway")).list_passwords(
        session()
    )
    assert res.error == "Request failed with HTTP 502."


def test_from_settings_requires_url_and_key():
    with pytest.raises(ValueError):
        SupabaseBackend.from_settings(BackendSettings(backend="supabase", _env_file=None))
