"""Argument models for every tool.

Required fields are plain ``str``; anything optional defaults to ``None`` and
is passed through untouched so space/limit defaulting stays in the client.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import AGENT_STATUSES, SESSION_STATES


class Params(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)


class NoParams(Params):
    pass


class SpaceOpt(Params):
    space: Optional[str] = None


class SpaceReq(Params):
    space: str


class SessionRef(Params):
    session_id: str


class SessionInSpace(SessionRef):
    space: Optional[str] = None


class IdRef(Params):
    id: str


class NameRef(Params):
    name: str


class AgentRef(SpaceReq):
    agent_name: str


class SecretRef(SpaceReq):
    key: str


# Service accounts

class CreateServiceAccount(Params):
    user: str
    password: str = Field(alias="pass")
    space: Optional[str] = None
    description: Optional[str] = None


class UpdateServiceAccount(IdRef):
    space: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None


class UpdatePassword(IdRef):
    current_password: str
    new_password: str


# Roles

class CreateRole(IdRef):
    description: Optional[str] = None
    rules: List[Dict[str, Any]]


class CreateRoleBinding(Params):
    subject: str
    role_ref: str
    space: Optional[str] = None


# Spaces

class SpaceBody(NameRef):
    description: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


# Sessions

class CreateSession(SpaceOpt):
    metadata: Optional[Dict[str, Any]] = None


class UpdateSession(SessionInSpace):
    metadata: Optional[Dict[str, Any]] = None


class UpdateSessionState(SessionInSpace):
    state: str

    @field_validator("state")
    @classmethod
    def known_state(cls, v: str) -> str:
        if v not in SESSION_STATES:
            raise ValueError(f"Invalid session state: {v}")
        return v


class RemixSession(SessionRef):
    space: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class SendMessage(SessionInSpace):
    content: str


class GetMessages(SessionInSpace):
    limit: Optional[int] = Field(default=None, ge=0)


# Agents

class CreateAgent(SpaceReq):
    name: str
    description: Optional[str] = None
    purpose: Optional[str] = None
    source_repo: Optional[str] = None
    source_branch: Optional[str] = None


class UpdateAgent(AgentRef):
    description: Optional[str] = None
    purpose: Optional[str] = None


class UpdateAgentStatus(AgentRef):
    status: str

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        if v not in AGENT_STATUSES:
            raise ValueError(f"Invalid agent status: {v}")
        return v


# Secrets

class CreateSecret(SpaceReq):
    key_name: str
    value: str
    description: Optional[str] = None


class UpdateSecret(SecretRef):
    value: Optional[str] = None
    description: Optional[str] = None


# Builds

class CreateBuild(SpaceReq):
    dockerfile: Optional[str] = None
    context: Optional[str] = None


class BuildRef(SpaceReq):
    build_id: str
