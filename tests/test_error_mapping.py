import httpx
import pytest

from raworc_mcp.client import map_error
from raworc_mcp.errors import (
    ApiError,
    AuthError,
    HttpError,
    NotFoundError,
    RequestTimeout,
    SerializationError,
)


class BrokenStream(httpx.SyncByteStream):
    def __iter__(self):
        raise httpx.ReadError("connection reset")
        yield b""  # pragma: no cover


def test_404_keeps_raw_body(client, api):
    api.add("GET", "spaces/default/sessions/missing", (404, "session missing not found"))
    with pytest.raises(NotFoundError) as exc:
        client.get_session("missing")
    assert exc.value.detail == "session missing not found"
    assert str(exc.value) == "Resource not found: session missing not found"


def test_404_with_envelope_is_still_raw(client, api):
    api.add("GET", "spaces/x", (404, {"error": {"message": "no space"}}))
    with pytest.raises(NotFoundError) as exc:
        client.get_space("x")
    assert "no space" in exc.value.detail
    assert exc.value.detail.startswith("{")


def test_401_keeps_raw_body(client, api):
    api.add("GET", "spaces", (401, "expired"))
    with pytest.raises(AuthError) as exc:
        client.list_spaces()
    assert str(exc.value) == "Authentication failed: expired"


def test_envelope_message_is_used(client, api):
    api.add("POST", "spaces", (409, {"error": {"message": "Space already exists"}}))
    with pytest.raises(ApiError) as exc:
        client.create_space("team")
    assert exc.value.status == 409
    assert exc.value.detail == "Space already exists"
    assert str(exc.value) == "API error: Space already exists"


@pytest.mark.parametrize("body", ["upstream exploded", '{"error": "flat"}', '{"error": {"message": 7}}', "[]"])
def test_unparseable_envelope_falls_back_to_raw_body(client, api, body):
    api.add("GET", "spaces", (500, body))
    with pytest.raises(ApiError) as exc:
        client.list_spaces()
    assert exc.value.status == 500
    assert exc.value.detail == body


def test_success_with_invalid_json_is_serialization_error(client, api):
    api.add("GET", "version", (200, "not json"))
    with pytest.raises(SerializationError):
        client.get_version()


def test_success_missing_required_field_is_serialization_error(client, api):
    api.add("GET", "spaces/default/sessions/s1", (200, {"state": "RUNNING"}))
    with pytest.raises(SerializationError) as exc:
        client.get_session("s1")
    assert str(exc.value).startswith("JSON serialization/deserialization failed: ")


def test_unknown_fields_are_kept(client, api):
    api.add("GET", "spaces/team", (200, {"name": "team", "quota": {"sessions": 5}}))
    space = client.get_space("team")
    assert space.to_json_data() == {"name": "team", "quota": {"sessions": 5}}


def test_timeout_is_request_timeout(client, api):
    api.add("GET", "spaces", httpx.ReadTimeout("slow"))
    with pytest.raises(RequestTimeout) as exc:
        client.list_spaces()
    assert str(exc.value).startswith("Timeout error: ")


def test_connection_failure_is_http_error(client, api):
    api.add("GET", "spaces", httpx.ConnectError("refused"))
    with pytest.raises(HttpError) as exc:
        client.list_spaces()
    assert "refused" in str(exc.value)


def test_action_ignores_success_body(client, api):
    api.add("POST", "spaces/default/sessions/s1/pause", (200, "<<not json>>"))
    assert client.pause_session("s1") is None


def test_action_maps_errors(client, api):
    api.add("POST", "spaces/default/sessions/s1/resume", (409, {"error": {"message": "Session is not paused"}}))
    with pytest.raises(ApiError) as exc:
        client.resume_session("s1")
    assert exc.value.detail == "Session is not paused"


def test_health_check_is_plain_text_and_unauthenticated(client, api):
    api.add("GET", "health", (200, "OK"))
    assert client.health_check() == "OK"
    assert "authorization" not in api.calls()[0].headers


def test_text_read_failure_yields_empty_string(client, api):
    api.add("GET", "health", lambda req: httpx.Response(200, stream=BrokenStream()))
    assert client.health_check() == ""


def test_text_endpoint_error_status_is_mapped(client, api):
    api.add("GET", "spaces/team/agents/bot/logs", (404, "agent bot not found"))
    with pytest.raises(NotFoundError) as exc:
        client.get_agent_logs("team", "bot")
    assert exc.value.detail == "agent bot not found"


def test_map_error_read_failure_uses_placeholder():
    req = httpx.Request("GET", "http://raworc.test/api/v0/spaces")
    res = httpx.Response(502, stream=BrokenStream(), request=req)
    err = map_error(res)
    assert isinstance(err, ApiError)
    assert err.status == 502
    assert err.detail == "Unknown error"
