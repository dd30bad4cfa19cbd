import httpx
import pytest

from conftest import json_transport, request_json
from schooldata.client.baas import BaasDataClient, encode_filter
from schooldata.client.base import FilterOp
from schooldata.client.result import ErrorKind
from schooldata.client.storage import AUTH_TOKEN_KEY, MemoryStateStore

REST_URL = "https://baas.example.test/rest/v1"


def make_client(handler, store=None):
    transport = json_transport(handler)
    return BaasDataClient(REST_URL, "anon-key", store=store, transport=transport), transport


def test_encode_filter_dialect():
    assert encode_filter(FilterOp.EQ, True) == "eq.true"
    assert encode_filter(FilterOp.EQ, None) == "is.null"
    assert encode_filter(FilterOp.NEQ, None) == "not.is.null"
    assert encode_filter(FilterOp.GTE, 90) == "gte.90"
    assert encode_filter(FilterOp.IN, ["a", "b,c"]) == 'in.(a,"b,c")'


@pytest.mark.asyncio
async def test_select_encodes_filters_order_and_limit():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": "s1", "code": "SFXSAI", "name": "Alpha"}])

    client, transport = make_client(handler)

    result = await (
        client.from_("schools")
        .select("id,code,name")
        .eq("is_active", True)
        .order("name")
        .limit(10)
    )

    assert result.ok
    assert result.count == 1
    sent = transport.calls[0]
    assert sent.url.path == "/rest/v1/schools"
    assert sent.url.params["select"] == "id,code,name"
    assert sent.url.params["is_active"] == "eq.true"
    assert sent.url.params["order"] == "name.asc"
    assert sent.url.params["limit"] == "10"
    assert sent.headers["apikey"] == "anon-key"
    assert sent.headers["Authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_stored_session_token_is_sent_as_bearer():
    store = MemoryStateStore({AUTH_TOKEN_KEY: "user-jwt"})
    client, transport = make_client(lambda r: httpx.Response(200, json=[]), store=store)

    await client.from_("students").select("*")

    assert transport.calls[0].headers["Authorization"] == "Bearer user-jwt"


@pytest.mark.asyncio
async def test_insert_row_returns_row_and_asks_for_representation():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.headers["Prefer"] == "return=representation"
        assert request.url.params["select"] == "id"
        assert request_json(request) == {"student_name": "Ana"}
        return httpx.Response(201, json=[{"id": "st-9"}])

    client, _ = make_client(handler)

    result = await client.from_("students").insert({"student_name": "Ana"}).select("id")

    assert result.data == {"id": "st-9"}


@pytest.mark.asyncio
async def test_update_is_patch_and_delete_counts_from_content_range():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "PATCH":
            assert request.url.params["id"] == "eq.st-1"
            return httpx.Response(200, json=[{"id": "st-1", "level": "Grade 8"}])
        assert request.method == "DELETE"
        assert request.headers["Prefer"] == "return=minimal,count=exact"
        return httpx.Response(204, headers={"Content-Range": "*/3"})

    client, _ = make_client(handler)

    updated = await client.from_("students").update({"level": "Grade 8"}).eq("id", "st-1")
    deleted = await client.from_("students").delete().eq("level", "Grade 8")

    assert updated.data == [{"id": "st-1", "level": "Grade 8"}]
    assert deleted.ok and deleted.data is None
    assert deleted.count == 3


@pytest.mark.asyncio
async def test_structured_error_body_becomes_transport_err():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "message": 'column students.nope does not exist',
                "code": "42703",
                "details": None,
                "hint": "Perhaps you meant to reference the column \"students.lrn\".",
            },
        )

    client, _ = make_client(handler)

    result = await client.from_("students").select("nope")

    assert result.error.kind is ErrorKind.TRANSPORT
    assert result.error.status_code == 400
    assert result.error.details["code"] == "42703"
    assert "students.lrn" in result.error.details["hint"]


@pytest.mark.asyncio
async def test_jwt_error_becomes_auth_err():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "JWT expired", "code": "PGRST301"})

    client, _ = make_client(handler)

    result = await client.from_("students").select("*")

    assert result.error.kind is ErrorKind.AUTH


@pytest.mark.asyncio
async def test_maybe_single_maps_zero_rows_to_none():
    client, _ = make_client(lambda r: httpx.Response(200, json=[]))

    result = await client.from_("schools").select("*").eq("code", "NONE").maybe_single()

    assert result.ok
    assert result.data is None


@pytest.mark.asyncio
async def test_non_json_success_body_is_transport_err():
    client, _ = make_client(lambda r: httpx.Response(200, text="<html>gateway</html>"))

    result = await client.from_("schools").select("id").eq("is_active", True)

    assert result.error.kind is ErrorKind.TRANSPORT
    assert result.error.message == "Invalid JSON response"
    assert result.error.details["table"] == "schools"
