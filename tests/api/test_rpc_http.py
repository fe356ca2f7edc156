"""HTTP Binding — tests for POST {json_host_path}{service} over httpx ASGITransport.

Tests cover:
    - JSON API calls (math/add, test/error) and message acks
    - Binary frames answered as octet-stream with sn echoed
    - Transport failures in the envelope shape (400, 404, 405, 413)
    - Per-request connection lifecycle, client IP resolution, push refusal
    - X-Powered-By and CORS preflight headers
"""

import json

import pytest

from lightrpc.core.flows import FlowDecision


@pytest.mark.asyncio
async def test_math_add_over_json(client):
    response = await client.post("/api/math/add", json={"a": 10, "b": 20})
    assert response.status_code == 200
    assert response.json() == {"isSucc": True, "res": {"result": 30}}
    assert response.headers["x-powered-by"] == "lightrpc"


@pytest.mark.asyncio
async def test_handler_exception_is_envelope_not_http_error(client):
    response = await client.post("/api/test/error", json={})
    assert response.status_code == 200
    assert response.json() == {
        "isSucc": False,
        "err": {"message": "boom", "code": "INTERNAL_ERROR", "type": "ServerError"},
    }


@pytest.mark.asyncio
async def test_unknown_api_returns_handler_not_found(client, runtime):
    response = await client.post("/api/user/delete", json={})
    assert response.json()["err"]["code"] == "HANDLER_NOT_FOUND"
    assert runtime.registry.has_api("user/delete") is False


@pytest.mark.asyncio
async def test_trailing_slash_is_part_of_service_name(client, runtime):
    response = await client.post("/api/math/add/", json={"a": 1, "b": 2})
    assert response.status_code == 200
    assert response.json()["err"]["code"] == "HANDLER_NOT_FOUND"
    assert runtime.registry.has_api("math/add/") is False


@pytest.mark.asyncio
async def test_message_call_is_acknowledged(client, inbox):
    response = await client.post("/api/chat/new?type=msg", json={"text": "hi"})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert inbox == [{"text": "hi"}]


@pytest.mark.asyncio
async def test_binary_frame_round_trip(client):
    frame = {"type": "api", "serviceName": "math/add", "data": {"a": 1, "b": 2}, "sn": 9}
    response = await client.post(
        "/api/math/add",
        content=json.dumps(frame).encode(),
        headers={"content-type": "application/octet-stream"},
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/octet-stream"
    assert json.loads(response.content) == {"isSucc": True, "res": {"result": 3}, "sn": 9}


@pytest.mark.asyncio
async def test_binary_message_frame_acknowledged(client, inbox):
    frame = {"type": "msg", "serviceName": "chat/new", "data": "hello"}
    response = await client.post(
        "/api/chat/new",
        content=json.dumps(frame).encode(),
        headers={"content-type": "application/octet-stream"},
    )
    assert json.loads(response.content) == {"success": True}
    assert inbox == ["hello"]


@pytest.mark.asyncio
async def test_invalid_binary_data(client):
    response = await client.post(
        "/api/math/add", content=b"\x00\x01garbage",
        headers={"content-type": "application/octet-stream"},
    )
    assert response.status_code == 400
    assert response.json() == {
        "isSucc": False,
        "err": {"message": "Invalid binary data", "code": "400", "type": "ServerError"},
    }


@pytest.mark.asyncio
async def test_json_parse_error(client):
    response = await client.post(
        "/api/math/add", content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["err"]["message"].startswith("JSON parse error:")


@pytest.mark.asyncio
async def test_empty_service_name(client):
    response = await client.post("/api/", json={})
    assert response.status_code == 400
    assert response.json()["err"]["message"] == "Invalid API path"


@pytest.mark.asyncio
async def test_body_too_large(client):
    response = await client.post("/api/math/add", json={"pad": "x" * 2048})
    assert response.status_code == 413
    assert response.json()["err"] == {
        "message": "Request body too large", "code": "413", "type": "ServerError",
    }


@pytest.mark.asyncio
async def test_wrong_method_uses_envelope(client):
    response = await client.get("/api/math/add")
    assert response.status_code == 405
    assert response.json()["err"]["code"] == "405"


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(client):
    response = await client.get("/nowhere")
    assert response.status_code == 404
    assert response.json()["isSucc"] is False


@pytest.mark.asyncio
async def test_connection_lifecycle_per_request(client, runtime):
    seen = []
    runtime.set_flows(
        on_connect=lambda p, c: seen.append(("open", p["conn_id"], p["client_ip"])) or FlowDecision.allow(),
        on_disconnect=lambda p, c: seen.append(("close", p["conn_id"])) or FlowDecision.allow(),
    )
    await client.post(
        "/api/math/add", json={"a": 1, "b": 1},
        headers={"x-forwarded-for": "203.0.113.5, 10.0.0.1"},
    )
    (_, open_id, ip), (_, close_id) = seen
    assert open_id.startswith("http_")
    assert open_id == close_id
    assert ip == "203.0.113.5"
    assert len(runtime.directory) == 0


@pytest.mark.asyncio
async def test_x_real_ip_fallback(client, runtime):
    ips = []
    runtime.set_flows(on_connect=lambda p, c: ips.append(p["client_ip"]) or FlowDecision.allow())
    await client.post("/api/math/add", json={"a": 1, "b": 1}, headers={"x-real-ip": "198.51.100.7"})
    assert ips == ["198.51.100.7"]


@pytest.mark.asyncio
async def test_http_connection_cannot_receive_push(client, runtime):
    async def push_back(req, ctx):
        result = await runtime.send_msg(ctx.conn_id, "chat/new", {"text": "hi"})
        return result.to_dict()

    runtime.implement_api("push/back", push_back)
    response = await client.post("/api/push/back", json={})
    res = response.json()["res"]
    assert res["isSucc"] is False
    assert "cannot receive pushed messages" in res["errMsg"]


@pytest.mark.asyncio
async def test_cors_preflight(client):
    response = await client.options(
        "/api/math/add",
        headers={
            "origin": "http://example.com",
            "access-control-request-method": "POST",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-max-age"] == "3600"
