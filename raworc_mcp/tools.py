import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from . import params as P
from .client import RaworcClient
from .errors import SerializationError, UnknownToolError, ValidationError
from .models import AGENT_STATUSES, SESSION_STATES, RemoteModel, ToolResult

logger = logging.getLogger("raworc_mcp.tools")

# Result formatting modes
JSON = "json"
CONFIRM = "confirm"
TEXT = "text"


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params: Type[P.Params]
    call: Callable[[RaworcClient, Any], Any]
    mode: str = JSON
    confirmation: Optional[str] = None
    properties: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def input_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": "object", "properties": self.properties}
        required = [f.alias or name for name, f in self.params.model_fields.items() if f.is_required()]
        if required:
            schema["required"] = required
        return schema


def _str(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _obj(description: str) -> Dict[str, Any]:
    return {"type": "object", "description": description}


SPACE_OPT = {"space": _str("Space name (optional, uses default if not provided)")}
SPACE = {"space": _str("Space name")}
SESSION = {"session_id": _str("Session ID")}
SESSION_IN_SPACE = {**SESSION, "space": _str("Space name (optional)")}
AGENT = {**SPACE, "agent_name": _str("Agent name")}
SECRET = {**SPACE, "key": _str("Secret key")}
ROLE_RULES = {
    "type": "array",
    "description": "Role rules",
    "items": {
        "type": "object",
        "properties": {
            "resources": {"type": "array", "items": {"type": "string"}},
            "verbs": {"type": "array", "items": {"type": "string"}},
            "scope": {"type": "string"},
        },
    },
}


def _tools() -> List[Tool]:
    return [
        # Public / auth
        Tool("health_check", "Check Raworc API health", P.NoParams, lambda c, p: c.health_check(), mode=TEXT),
        Tool("get_version", "Get API version", P.NoParams, lambda c, p: c.get_version()),
        Tool("get_user_info", "Get the authenticated user", P.NoParams, lambda c, p: c.get_user_info()),
        # Service accounts
        Tool("list_service_accounts", "List all service accounts", P.NoParams, lambda c, p: c.list_service_accounts()),
        Tool(
            "create_service_account",
            "Create a new service account",
            P.CreateServiceAccount,
            lambda c, p: c.create_service_account(p.user, p.password, space=p.space, description=p.description),
            properties={
                "user": _str("Username for the service account"),
                "pass": _str("Password for the service account"),
                "space": _str("Space name (optional)"),
                "description": _str("Description of the service account"),
            },
        ),
        Tool(
            "get_service_account",
            "Get a specific service account",
            P.IdRef,
            lambda c, p: c.get_service_account(p.id),
            properties={"id": _str("Service account ID")},
        ),
        Tool(
            "update_service_account",
            "Update a service account",
            P.UpdateServiceAccount,
            lambda c, p: c.update_service_account(p.id, space=p.space, description=p.description, active=p.active),
            properties={
                "id": _str("Service account ID"),
                "space": _str("Space name"),
                "description": _str("Description"),
                "active": {"type": "boolean", "description": "Whether the account is active"},
            },
        ),
        Tool(
            "delete_service_account",
            "Delete a service account",
            P.IdRef,
            lambda c, p: c.delete_service_account(p.id),
            mode=CONFIRM,
            confirmation="Service account deleted successfully",
            properties={"id": _str("Service account ID")},
        ),
        Tool(
            "update_service_account_password",
            "Update service account password",
            P.UpdatePassword,
            lambda c, p: c.update_service_account_password(p.id, p.current_password, p.new_password),
            mode=CONFIRM,
            confirmation="Password updated successfully",
            properties={
                "id": _str("Service account ID"),
                "current_password": _str("Current password"),
                "new_password": _str("New password"),
            },
        ),
        # Roles
        Tool("list_roles", "List all roles", P.NoParams, lambda c, p: c.list_roles()),
        Tool(
            "create_role",
            "Create a new role",
            P.CreateRole,
            lambda c, p: c.create_role(p.id, p.rules, description=p.description),
            properties={"id": _str("Role ID"), "description": _str("Role description"), "rules": ROLE_RULES},
        ),
        Tool("get_role", "Get a specific role", P.IdRef, lambda c, p: c.get_role(p.id), properties={"id": _str("Role ID")}),
        Tool(
            "delete_role",
            "Delete a role",
            P.IdRef,
            lambda c, p: c.delete_role(p.id),
            mode=CONFIRM,
            confirmation="Role deleted successfully",
            properties={"id": _str("Role ID")},
        ),
        Tool("list_role_bindings", "List all role bindings", P.NoParams, lambda c, p: c.list_role_bindings()),
        Tool(
            "create_role_binding",
            "Create a new role binding",
            P.CreateRoleBinding,
            lambda c, p: c.create_role_binding(p.subject, p.role_ref, space=p.space),
            properties={
                "subject": _str("Subject (user/service account)"),
                "role_ref": _str("Role reference"),
                "space": _str("Space name (optional)"),
            },
        ),
        Tool(
            "get_role_binding",
            "Get a specific role binding",
            P.IdRef,
            lambda c, p: c.get_role_binding(p.id),
            properties={"id": _str("Role binding ID")},
        ),
        Tool(
            "delete_role_binding",
            "Delete a role binding",
            P.IdRef,
            lambda c, p: c.delete_role_binding(p.id),
            mode=CONFIRM,
            confirmation="Role binding deleted successfully",
            properties={"id": _str("Role binding ID")},
        ),
        # Spaces
        Tool("list_spaces", "List all spaces", P.NoParams, lambda c, p: c.list_spaces()),
        Tool(
            "create_space",
            "Create a new space",
            P.SpaceBody,
            lambda c, p: c.create_space(p.name, description=p.description, settings=p.settings),
            properties={"name": _str("Space name"), "description": _str("Space description"), "settings": _obj("Space settings")},
        ),
        Tool("get_space", "Get a specific space", P.NameRef, lambda c, p: c.get_space(p.name), properties={"name": _str("Space name")}),
        Tool(
            "update_space",
            "Update a space",
            P.SpaceBody,
            lambda c, p: c.update_space(p.name, description=p.description, settings=p.settings),
            properties={"name": _str("Space name"), "description": _str("Space description"), "settings": _obj("Space settings")},
        ),
        Tool(
            "delete_space",
            "Delete a space",
            P.NameRef,
            lambda c, p: c.delete_space(p.name),
            mode=CONFIRM,
            confirmation="Space deleted successfully",
            properties={"name": _str("Space name")},
        ),
        # Sessions
        Tool("list_sessions", "List all sessions in a space", P.SpaceOpt, lambda c, p: c.list_sessions(p.space), properties=SPACE_OPT),
        Tool(
            "create_session",
            "Create a new session",
            P.CreateSession,
            lambda c, p: c.create_session(p.space, metadata=p.metadata),
            properties={**SPACE_OPT, "metadata": _obj("Additional metadata for the session")},
        ),
        Tool(
            "get_session",
            "Get session details",
            P.SessionInSpace,
            lambda c, p: c.get_session(p.session_id, space=p.space),
            properties=SESSION_IN_SPACE,
        ),
        Tool(
            "update_session",
            "Update session details",
            P.UpdateSession,
            lambda c, p: c.update_session(p.session_id, space=p.space, metadata=p.metadata),
            properties={**SESSION_IN_SPACE, "metadata": _obj("Session metadata")},
        ),
        Tool(
            "update_session_state",
            "Update session state",
            P.UpdateSessionState,
            lambda c, p: c.update_session_state(p.session_id, p.state, space=p.space),
            mode=CONFIRM,
            confirmation="Session state updated successfully",
            properties={**SESSION_IN_SPACE, "state": _str("New session state", enum=list(SESSION_STATES))},
        ),
        Tool(
            "close_session",
            "Close a session",
            P.SessionRef,
            lambda c, p: c.close_session(p.session_id),
            mode=CONFIRM,
            confirmation="Session closed successfully",
            properties=SESSION,
        ),
        Tool(
            "restore_session",
            "Restore a closed session",
            P.SessionRef,
            lambda c, p: c.restore_session(p.session_id),
            mode=CONFIRM,
            confirmation="Session restored successfully",
            properties=SESSION,
        ),
        Tool(
            "remix_session",
            "Fork a session",
            P.RemixSession,
            lambda c, p: c.remix_session(p.session_id, space=p.space, metadata=p.metadata),
            properties={
                "session_id": _str("Session ID to fork"),
                "space": _str("Target space for the new session"),
                "metadata": _obj("Metadata for the new session"),
            },
        ),
        # Messages
        Tool(
            "send_message",
            "Send a message to a session",
            P.SendMessage,
            lambda c, p: c.send_message(p.session_id, p.content, space=p.space),
            properties={**SESSION_IN_SPACE, "content": _str("Message content")},
        ),
        Tool(
            "get_messages",
            "Get messages from a session",
            P.GetMessages,
            lambda c, p: c.get_messages(p.session_id, space=p.space, limit=p.limit),
            properties={**SESSION_IN_SPACE, "limit": {"type": "number", "description": "Maximum number of messages to retrieve"}},
        ),
        Tool(
            "get_message_count",
            "Get message count for a session",
            P.SessionInSpace,
            lambda c, p: c.get_message_count(p.session_id, space=p.space),
            properties=SESSION_IN_SPACE,
        ),
        Tool(
            "clear_messages",
            "Clear all messages from a session",
            P.SessionInSpace,
            lambda c, p: c.clear_messages(p.session_id, space=p.space),
            mode=CONFIRM,
            confirmation="Messages cleared successfully",
            properties=SESSION_IN_SPACE,
        ),
        Tool(
            "pause_session",
            "Pause a session",
            P.SessionInSpace,
            lambda c, p: c.pause_session(p.session_id, space=p.space),
            mode=CONFIRM,
            confirmation="Session paused successfully",
            properties=SESSION_IN_SPACE,
        ),
        Tool(
            "resume_session",
            "Resume a session",
            P.SessionInSpace,
            lambda c, p: c.resume_session(p.session_id, space=p.space),
            mode=CONFIRM,
            confirmation="Session resumed successfully",
            properties=SESSION_IN_SPACE,
        ),
        Tool(
            "terminate_session",
            "Terminate a session",
            P.SessionInSpace,
            lambda c, p: c.terminate_session(p.session_id, space=p.space),
            mode=CONFIRM,
            confirmation="Session terminated successfully",
            properties=SESSION_IN_SPACE,
        ),
        # Agents
        Tool("list_agents", "List agents in a space", P.SpaceOpt, lambda c, p: c.list_agents(p.space), properties=SPACE_OPT),
        Tool(
            "create_agent",
            "Create a new agent",
            P.CreateAgent,
            lambda c, p: c.create_agent(
                p.space,
                p.name,
                description=p.description,
                purpose=p.purpose,
                source_repo=p.source_repo,
                source_branch=p.source_branch,
            ),
            properties={
                **SPACE,
                "name": _str("Agent name"),
                "description": _str("Agent description"),
                "purpose": _str("Agent purpose"),
                "source_repo": _str("Source repository"),
                "source_branch": _str("Source branch"),
            },
        ),
        Tool("get_agent", "Get a specific agent", P.AgentRef, lambda c, p: c.get_agent(p.space, p.agent_name), properties=AGENT),
        Tool(
            "update_agent",
            "Update an agent",
            P.UpdateAgent,
            lambda c, p: c.update_agent(p.space, p.agent_name, description=p.description, purpose=p.purpose),
            properties={**AGENT, "description": _str("Agent description"), "purpose": _str("Agent purpose")},
        ),
        Tool(
            "delete_agent",
            "Delete an agent",
            P.AgentRef,
            lambda c, p: c.delete_agent(p.space, p.agent_name),
            mode=CONFIRM,
            confirmation="Agent deleted successfully",
            properties=AGENT,
        ),
        Tool(
            "update_agent_status",
            "Update agent status",
            P.UpdateAgentStatus,
            lambda c, p: c.update_agent_status(p.space, p.agent_name, p.status),
            properties={**AGENT, "status": _str("New agent status", enum=list(AGENT_STATUSES))},
        ),
        Tool(
            "deploy_agent",
            "Deploy an agent",
            P.AgentRef,
            lambda c, p: c.deploy_agent(p.space, p.agent_name),
            mode=CONFIRM,
            confirmation="Agent deployed successfully",
            properties=AGENT,
        ),
        Tool(
            "stop_agent",
            "Stop an agent",
            P.AgentRef,
            lambda c, p: c.stop_agent(p.space, p.agent_name),
            mode=CONFIRM,
            confirmation="Agent stopped successfully",
            properties=AGENT,
        ),
        Tool(
            "list_running_agents",
            "List running agents in a space",
            P.SpaceReq,
            lambda c, p: c.list_running_agents(p.space),
            properties=SPACE,
        ),
        Tool(
            "get_agent_logs",
            "Get logs for an agent",
            P.AgentRef,
            lambda c, p: c.get_agent_logs(p.space, p.agent_name),
            mode=TEXT,
            properties=AGENT,
        ),
        # Secrets
        Tool("list_secrets", "List secrets in a space", P.SpaceOpt, lambda c, p: c.list_secrets(p.space), properties=SPACE_OPT),
        Tool(
            "create_secret",
            "Create a new secret",
            P.CreateSecret,
            lambda c, p: c.create_secret(p.space, p.key_name, p.value, description=p.description),
            properties={
                **SPACE,
                "key_name": _str("Secret key name"),
                "value": _str("Secret value"),
                "description": _str("Secret description"),
            },
        ),
        Tool("get_secret", "Get a secret value", P.SecretRef, lambda c, p: c.get_secret(p.space, p.key), properties=SECRET),
        Tool(
            "update_secret",
            "Update a secret value",
            P.UpdateSecret,
            lambda c, p: c.update_secret(p.space, p.key, value=p.value, description=p.description),
            properties={**SECRET, "value": _str("New secret value"), "description": _str("Secret description")},
        ),
        Tool(
            "delete_secret",
            "Delete a secret",
            P.SecretRef,
            lambda c, p: c.delete_secret(p.space, p.key),
            mode=CONFIRM,
            confirmation="Secret deleted successfully",
            properties=SECRET,
        ),
        # Builds
        Tool(
            "create_build",
            "Trigger a space build",
            P.CreateBuild,
            lambda c, p: c.create_build(p.space, dockerfile=p.dockerfile, context=p.context),
            properties={**SPACE, "dockerfile": _str("Dockerfile content"), "context": _str("Build context")},
        ),
        Tool("get_latest_build", "Get latest build status", P.SpaceReq, lambda c, p: c.get_latest_build(p.space), properties=SPACE),
        Tool(
            "get_build",
            "Get specific build status",
            P.BuildRef,
            lambda c, p: c.get_build(p.space, p.build_id),
            properties={**SPACE, "build_id": _str("Build ID")},
        ),
    ]


TOOLS: Dict[str, Tool] = {t.name: t for t in _tools()}


def _validation_message(err: Dict[str, Any]) -> str:
    name = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
    kind = err.get("type")
    if kind in ("missing", "string_type") and len(err.get("loc", ())) == 1:
        return f"{name} is required"
    if kind == "value_error":
        ctx_err = (err.get("ctx") or {}).get("error")
        if ctx_err is not None:
            return str(ctx_err)
    return f"invalid {name}: {err.get('msg')}"


def parse_params(tool: Tool, arguments: Any) -> P.Params:
    """Validate the raw argument bag for ``tool``; never touches the network."""
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError("arguments must be an object")
    try:
        return tool.params.model_validate(arguments)
    except PydanticValidationError as exc:
        raise ValidationError(_validation_message(exc.errors()[0])) from exc


def _jsonable(value: Any) -> Any:
    if isinstance(value, RemoteModel):
        return value.to_json_data()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def format_result(tool: Tool, result: Any) -> str:
    if tool.mode == CONFIRM:
        return tool.confirmation or "OK"
    if tool.mode == TEXT:
        return result
    try:
        return json.dumps(_jsonable(result), indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(str(exc)) from exc


class Dispatcher:
    def __init__(self, client: RaworcClient, tools: Optional[Dict[str, Tool]] = None):
        self.client = client
        self.tools = tools if tools is not None else TOOLS

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {"name": t.name, "description": t.description, "inputSchema": t.input_schema()}
            for t in self.tools.values()
        ]

    def dispatch(self, name: str, arguments: Any = None) -> ToolResult:
        tool = self.tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        p = parse_params(tool, arguments)
        logger.debug("tool_call", extra={"extra": {"tool": name, "args": sorted((arguments or {}).keys())}})
        result = tool.call(self.client, p)
        return ToolResult.text(format_result(tool, result))
