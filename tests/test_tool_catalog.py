import pytest

from raworc_mcp.models import AGENT_STATUSES, SESSION_STATES
from raworc_mcp.tools import CONFIRM, TEXT, TOOLS, Dispatcher

EXPECTED = {
    "health_check", "get_version", "get_user_info",
    "list_service_accounts", "create_service_account", "get_service_account",
    "update_service_account", "delete_service_account", "update_service_account_password",
    "list_roles", "create_role", "get_role", "delete_role",
    "list_role_bindings", "create_role_binding", "get_role_binding", "delete_role_binding",
    "list_spaces", "create_space", "get_space", "update_space", "delete_space",
    "list_sessions", "create_session", "get_session", "update_session", "update_session_state",
    "close_session", "restore_session", "remix_session",
    "send_message", "get_messages", "get_message_count", "clear_messages",
    "pause_session", "resume_session", "terminate_session",
    "list_agents", "create_agent", "get_agent", "update_agent", "delete_agent",
    "update_agent_status", "deploy_agent", "stop_agent", "list_running_agents", "get_agent_logs",
    "list_secrets", "create_secret", "get_secret", "update_secret", "delete_secret",
    "create_build", "get_latest_build", "get_build",
}


def test_catalog_is_complete():
    assert set(TOOLS) == EXPECTED
    assert len(TOOLS) == 55


@pytest.mark.parametrize("name", sorted(EXPECTED))
def test_schema_required_fields_are_declared(name):
    schema = TOOLS[name].input_schema()
    assert schema["type"] == "object"
    for field in schema.get("required", []):
        assert field in schema["properties"], f"{name}: {field} missing from properties"


def test_optional_space_is_not_required():
    assert "required" not in TOOLS["list_sessions"].input_schema()
    assert TOOLS["get_session"].input_schema()["required"] == ["session_id"]
    assert TOOLS["get_agent"].input_schema()["required"] == ["space", "agent_name"]


def test_service_account_schema_uses_wire_name_for_password():
    schema = TOOLS["create_service_account"].input_schema()
    assert schema["required"] == ["user", "pass"]


def test_enums_are_advertised():
    state = TOOLS["update_session_state"].input_schema()["properties"]["state"]
    status = TOOLS["update_agent_status"].input_schema()["properties"]["status"]
    assert state["enum"] == list(SESSION_STATES)
    assert status["enum"] == list(AGENT_STATUSES)


def test_modes():
    assert TOOLS["health_check"].mode == TEXT
    assert TOOLS["get_agent_logs"].mode == TEXT
    confirm = {n for n, t in TOOLS.items() if t.mode == CONFIRM}
    assert "pause_session" in confirm
    assert "update_agent_status" not in confirm
    assert len(confirm) == 16


def test_list_tools_shape(client):
    listed = Dispatcher(client).list_tools()
    assert len(listed) == len(TOOLS)
    for entry in listed:
        assert set(entry) == {"name", "description", "inputSchema"}
        assert entry["description"]
