import json

import httpx
import pytest

from crewportal.connectors.zoho_client import ZohoAPIError, ZohoAuthError, ZohoClient

TOKEN_URL = "https://www.zohoapis.com/crm/v7/functions/get_token/actions/execute?auth_type=apikey"


def make_client(handler, **kwargs) -> ZohoClient:
    params = {"access_token_url": TOKEN_URL}
    params.update(kwargs)
    return ZohoClient(
        api_domain="https://www.zohoapis.com",
        transport=httpx.MockTransport(handler),
        **params,
    )


def token_response(token="tok-1"):
    return httpx.Response(200, json={"crmAPIResponse": {"body": {"access_token": f"Zoho-oauthtoken {token}"}}})


async def test_token_from_function_is_cached():
    calls = {"token": 0}

    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            calls["token"] += 1
            return token_response()
        assert request.headers["Authorization"] == "Zoho-oauthtoken tok-1"
        return httpx.Response(200, json={"data": [{"id": "1"}], "info": {"more_records": False}})

    client = make_client(handler)
    assert await client.get_valid_token() == "tok-1"
    await client.get_deals()
    await client.get_portal_users()
    assert calls["token"] == 1
    await client.aclose()


async def test_oauth_refresh_fallback():
    def handler(request: httpx.Request):
        assert request.url.path == "/oauth/v2/token"
        assert request.url.params["grant_type"] == "refresh_token"
        return httpx.Response(200, json={"access_token": "tok-oauth", "expires_in": 3600})

    client = make_client(handler, access_token_url="", client_id="cid", client_secret="sec", refresh_token="ref")
    assert await client.get_valid_token() == "tok-oauth"
    await client.aclose()


async def test_missing_credentials_raise_auth_error():
    client = make_client(lambda request: httpx.Response(500), access_token_url="")
    with pytest.raises(ZohoAuthError):
        await client.get_valid_token()
    await client.aclose()


async def test_fetch_all_follows_pagination():
    pages = {
        "1": {"data": [{"id": "1"}, {"id": "2"}], "info": {"more_records": True}},
        "2": {"data": [{"id": "3"}], "info": {"more_records": False}},
    }

    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response()
        return httpx.Response(200, json=pages[request.url.params["page"]])

    client = make_client(handler)
    deals = await client.get_deals()
    assert [d["id"] for d in deals] == ["1", "2", "3"]
    await client.aclose()


async def test_empty_module_returns_no_records():
    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response()
        return httpx.Response(204)

    client = make_client(handler)
    assert await client.get_painters() == []
    await client.aclose()


async def test_expired_token_is_refreshed_once():
    tokens = iter(["old", "new"])

    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response(next(tokens))
        if request.headers["Authorization"] == "Zoho-oauthtoken old":
            return httpx.Response(401, json={"code": "INVALID_TOKEN"})
        return httpx.Response(201, json={"data": [{"code": "SUCCESS", "status": "success", "details": {"id": "77"}}]})

    client = make_client(handler)
    assert await client.create_timesheet({"Name": "x"}) == "77"
    await client.aclose()


async def test_create_record_posts_data_envelope():
    seen = {}

    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response()
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": [{"code": "SUCCESS", "status": "success", "details": {"id": "88"}}]})

    client = make_client(handler)
    assert await client.create_junction({"Painter": {"id": "7001"}}) == "88"
    assert seen["path"] == "/crm/v2/Timesheet_Painters"
    assert seen["body"] == {"data": [{"Painter": {"id": "7001"}}]}
    await client.aclose()


async def test_rejected_insert_raises():
    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response()
        return httpx.Response(201, json={"data": [{"code": "MANDATORY_NOT_FOUND", "status": "error",
                                                   "message": "required field not found"}]})

    client = make_client(handler)
    with pytest.raises(ZohoAPIError):
        await client.create_timesheet({"Name": "x"})
    await client.aclose()


async def test_rate_limit_raises_with_status():
    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response()
        return httpx.Response(429, text="too many requests")

    client = make_client(handler)
    with pytest.raises(ZohoAPIError) as exc_info:
        await client.get_deals()
    assert exc_info.value.status_code == 429
    await client.aclose()


async def test_timeout_is_a_failure():
    def handler(request: httpx.Request):
        if "get_token" in str(request.url):
            return token_response()
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)
    with pytest.raises(ZohoAPIError):
        await client.create_timesheet({"Name": "x"})
    await client.aclose()
