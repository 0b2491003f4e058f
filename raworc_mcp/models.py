from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

SESSION_STATES = ("INIT", "RUNNING", "PAUSED", "SUSPENDED", "TERMINATED", "IDLE", "CLOSED")
AGENT_STATUSES = ("active", "inactive", "running", "stopped", "error")


class RemoteModel(BaseModel):
    """Upstream entity. Unknown fields are kept so nothing is lost on re-encode."""

    model_config = ConfigDict(extra="allow")

    def to_json_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class Session(RemoteModel):
    id: str
    space: Optional[str] = None
    created_by: Optional[str] = None
    state: Optional[str] = None
    container_id: Optional[str] = None
    persistent_volume_id: Optional[str] = None
    parent_session_id: Optional[str] = None
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    last_activity_at: Optional[str] = None
    terminated_at: Optional[str] = None
    termination_reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Message(RemoteModel):
    id: str
    session_id: Optional[str] = None
    role: Optional[str] = None
    content: str
    created_at: Optional[str] = None


class MessageCount(RemoteModel):
    count: int


class Space(RemoteModel):
    name: str
    description: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AgentResources(RemoteModel):
    cpu: Optional[str] = None
    memory: Optional[str] = None
    gpu: Optional[str] = None


class Agent(RemoteModel):
    name: str
    description: Optional[str] = None
    purpose: Optional[str] = None
    source_repo: Optional[str] = None
    source_branch: Optional[str] = None
    image: Optional[str] = None
    command: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    resources: Optional[AgentResources] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Secret(RemoteModel):
    key: Optional[str] = None
    key_name: Optional[str] = None
    value: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Build(RemoteModel):
    id: str
    space: Optional[str] = None
    status: Optional[str] = None
    image: Optional[str] = None
    logs: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None


class ServiceAccount(RemoteModel):
    id: str
    user: str
    space: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login_at: Optional[str] = None


class RoleRule(RemoteModel):
    resources: List[str] = Field(default_factory=list)
    verbs: List[str] = Field(default_factory=list)
    scope: Optional[str] = None


class Role(RemoteModel):
    # Older servers answer with `name`, newer ones with `id`
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    rules: List[RoleRule] = Field(default_factory=list)
    created_at: Optional[str] = None


class RoleBinding(RemoteModel):
    id: str
    subject: str
    role_ref: str
    space: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UserInfo(RemoteModel):
    user: str
    namespace: Optional[str] = None
    type: Optional[str] = None


class VersionResponse(RemoteModel):
    version: str
    api: Optional[str] = None


class AuthResponse(RemoteModel):
    token: str
    token_type: Optional[str] = None
    expires_at: Optional[str] = None


# Tool result envelope

class ToolContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    content: List[ToolContent]

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[ToolContent(text=text)])
