"""HTTP client for the Raworc session-orchestration API.

Every public method maps to exactly one upstream call (plus, at most, one
re-authentication and one replay when a 401 comes back and credentials are
configured). Space-scoped methods resolve the space as: explicit argument,
then the configured default space, then the literal ``"default"``.
"""
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from .errors import (
    ApiError,
    AuthError,
    ConfigError,
    HttpError,
    NotFoundError,
    RaworcError,
    RequestTimeout,
    SerializationError,
)
from .models import (
    Agent,
    AuthResponse,
    Build,
    Message,
    MessageCount,
    Role,
    RoleBinding,
    Secret,
    ServiceAccount,
    Session,
    Space,
    UserInfo,
    VersionResponse,
)
from .settings import DEFAULT_API_URL, Settings

T = TypeVar("T")

FALLBACK_SPACE = "default"
DEFAULT_TIMEOUT = 30.0

logger = logging.getLogger("raworc_mcp.client")


def _parse_base_url(api_url: str) -> httpx.URL:
    try:
        url = httpx.URL(api_url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigError(f"Invalid API URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"Invalid API URL: {api_url!r}")
    # Keep the /api/v0 prefix when joining relative paths
    if not url.path.endswith("/"):
        url = url.copy_with(path=url.path + "/")
    return url


def _body(**fields: Any) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def _decode(shape: Any, data: Any) -> Any:
    try:
        return TypeAdapter(shape).validate_python(data)
    except PydanticValidationError as exc:
        raise SerializationError(str(exc)) from exc


def _read_text(res: httpx.Response, fallback: str) -> str:
    try:
        res.read()
    except httpx.HTTPError as exc:
        logger.warning("body_read_failed", extra={"extra": {"url": str(res.request.url), "err": str(exc)}})
        return fallback
    return res.text


def map_error(res: httpx.Response) -> RaworcError:
    """Classify a non-2xx response.

    404 and 401 keep the raw body as detail; everything else prefers the
    ``{"error": {"message": ...}}`` envelope and falls back to the raw body.
    """
    text = _read_text(res, "Unknown error")
    status = res.status_code
    if status == 404:
        return NotFoundError(text)
    if status == 401:
        return AuthError(text)
    try:
        message = json.loads(text)["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return ApiError(status, text)
    if not isinstance(message, str):
        return ApiError(status, text)
    return ApiError(status, message)


class RaworcClient:
    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        auth_token: Optional[str] = None,
        default_space: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {timeout}")
        self.base_url = _parse_base_url(api_url)
        self.default_space = default_space
        self.username = username
        self.password = password
        self.timeout = timeout
        self._token = auth_token
        self._http = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, cfg: Settings, transport: Optional[httpx.BaseTransport] = None) -> "RaworcClient":
        return cls(
            api_url=cfg.RAWORC_API_URL,
            auth_token=cfg.RAWORC_AUTH_TOKEN,
            default_space=cfg.RAWORC_DEFAULT_SPACE,
            username=cfg.RAWORC_USERNAME,
            password=cfg.RAWORC_PASSWORD,
            timeout=cfg.RAWORC_TIMEOUT,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "RaworcClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Token handling. Single-threaded use only; a concurrent caller would need
    # a single-flight refresh around authenticate().

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def authenticate(self, username: str, password: str) -> str:
        """POST credentials to auth/login and store the returned bearer token."""
        res = self._send("POST", "auth/login", body={"user": username, "pass": password}, authenticated=False)
        auth = self._handle_json(res, AuthResponse)
        self.set_token(auth.token)
        logger.info("authenticated", extra={"extra": {"user": username}})
        return auth.token

    # Internals

    def resolve_space(self, space: Optional[str] = None) -> str:
        if space is not None:
            return space
        if self.default_space is not None:
            return self.default_space
        return FALLBACK_SPACE

    def build_url(self, path: str) -> httpx.URL:
        return self.base_url.join(path.lstrip("/"))

    def _headers(self, authenticated: bool = True) -> Dict[str, str]:
        h = {"Accept": "application/json", "Content-Type": "application/json"}
        if authenticated and self._token:
            h["Authorization"] = f"Bearer {self._token}"
        return h

    def _send(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
        stream: bool = False,
    ) -> httpx.Response:
        kwargs: Dict[str, Any] = {"headers": self._headers(authenticated)}
        if body is not None:
            kwargs["json"] = body
        if params:
            kwargs["params"] = params
        request = self._http.build_request(method, self.build_url(path), **kwargs)
        start = time.time()
        try:
            res = self._http.send(request, stream=stream)
        except httpx.TimeoutException as exc:
            raise RequestTimeout(f"{method} {path} exceeded {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise HttpError(str(exc)) from exc
        logger.debug(
            "upstream",
            extra={"extra": {"method": method, "path": path, "status": res.status_code, "duration_ms": int((time.time() - start) * 1000)}},
        )
        return res

    def _handle_json(self, res: httpx.Response, shape: Any) -> Any:
        if not res.is_success:
            raise map_error(res)
        try:
            data = res.json()
        except ValueError as exc:
            raise SerializationError(str(exc)) from exc
        return _decode(shape, data)

    def _with_retry(self, call: Callable[[], T]) -> T:
        """Run ``call``; on a 401 re-authenticate once and replay it once."""
        try:
            return call()
        except AuthError:
            if not self.has_credentials:
                raise
        logger.info("reauthenticate", extra={"extra": {"user": self.username}})
        self.authenticate(self.username, self.password)
        return call()

    def _get_json(self, path: str, shape: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._with_retry(lambda: self._handle_json(self._send("GET", path, params=params), shape))

    def _post_json(self, path: str, body: Any, shape: Any) -> Any:
        return self._with_retry(lambda: self._handle_json(self._send("POST", path, body=body), shape))

    def _put_json(self, path: str, body: Any, shape: Any) -> Any:
        return self._with_retry(lambda: self._handle_json(self._send("PUT", path, body=body), shape))

    def _action(self, method: str, path: str, body: Any = None) -> None:
        # Success body is not interpreted
        def call() -> None:
            res = self._send(method, path, body=body)
            if not res.is_success:
                raise map_error(res)

        self._with_retry(call)

    def _delete(self, path: str) -> None:
        self._action("DELETE", path)

    def _get_text(self, path: str, authenticated: bool = True) -> str:
        # A failed body read yields "" instead of an error
        def call() -> str:
            res = self._send("GET", path, authenticated=authenticated, stream=True)
            try:
                if not res.is_success:
                    raise map_error(res)
                return _read_text(res, "")
            finally:
                res.close()

        return self._with_retry(call)

    # Auth / public

    def get_user_info(self) -> UserInfo:
        return self._get_json("auth/me", UserInfo)

    def health_check(self) -> str:
        return self._get_text("health", authenticated=False)

    def get_version(self) -> VersionResponse:
        return self._get_json("version", VersionResponse)

    # Spaces

    def list_spaces(self) -> List[Space]:
        return self._get_json("spaces", List[Space])

    def create_space(self, name: str, description: Optional[str] = None, settings: Optional[Dict[str, Any]] = None) -> Space:
        return self._post_json("spaces", _body(name=name, description=description, settings=settings), Space)

    def get_space(self, name: str) -> Space:
        return self._get_json(f"spaces/{name}", Space)

    def update_space(self, name: str, description: Optional[str] = None, settings: Optional[Dict[str, Any]] = None) -> Space:
        return self._put_json(f"spaces/{name}", _body(description=description, settings=settings), Space)

    def delete_space(self, name: str) -> None:
        self._delete(f"spaces/{name}")

    # Sessions (space-scoped)

    def list_sessions(self, space: Optional[str] = None) -> List[Session]:
        return self._get_json(f"spaces/{self.resolve_space(space)}/sessions", List[Session])

    def create_session(self, space: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Session:
        # Space is carried by the path, not the body
        return self._post_json(f"spaces/{self.resolve_space(space)}/sessions", _body(metadata=metadata), Session)

    def get_session(self, session_id: str, space: Optional[str] = None) -> Session:
        return self._get_json(f"spaces/{self.resolve_space(space)}/sessions/{session_id}", Session)

    def update_session(self, session_id: str, space: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Session:
        return self._put_json(f"spaces/{self.resolve_space(space)}/sessions/{session_id}", _body(metadata=metadata), Session)

    def update_session_state(self, session_id: str, state: str, space: Optional[str] = None) -> None:
        self._action("PUT", f"spaces/{self.resolve_space(space)}/sessions/{session_id}/state", {"state": state})

    def pause_session(self, session_id: str, space: Optional[str] = None) -> None:
        self._action("POST", f"spaces/{self.resolve_space(space)}/sessions/{session_id}/pause")

    def resume_session(self, session_id: str, space: Optional[str] = None) -> None:
        self._action("POST", f"spaces/{self.resolve_space(space)}/sessions/{session_id}/resume")

    def terminate_session(self, session_id: str, space: Optional[str] = None) -> None:
        self._delete(f"spaces/{self.resolve_space(space)}/sessions/{session_id}")

    # Sessions (global)

    def close_session(self, session_id: str) -> None:
        self._action("POST", f"sessions/{session_id}/close")

    def restore_session(self, session_id: str) -> None:
        self._action("POST", f"sessions/{session_id}/restore")

    def remix_session(self, session_id: str, space: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Session:
        return self._post_json(f"sessions/{session_id}/remix", _body(space=space, metadata=metadata), Session)

    # Messages

    def get_messages(self, session_id: str, space: Optional[str] = None, limit: Optional[int] = None) -> List[Message]:
        params = {"limit": limit} if limit is not None else None
        return self._get_json(f"spaces/{self.resolve_space(space)}/sessions/{session_id}/messages", List[Message], params=params)

    def send_message(self, session_id: str, content: str, space: Optional[str] = None) -> Message:
        return self._post_json(f"spaces/{self.resolve_space(space)}/sessions/{session_id}/messages", {"content": content}, Message)

    def get_message_count(self, session_id: str, space: Optional[str] = None) -> MessageCount:
        return self._get_json(f"spaces/{self.resolve_space(space)}/sessions/{session_id}/messages/count", MessageCount)

    def clear_messages(self, session_id: str, space: Optional[str] = None) -> None:
        self._delete(f"spaces/{self.resolve_space(space)}/sessions/{session_id}/messages")

    # Agents

    def list_agents(self, space: Optional[str] = None) -> List[Agent]:
        return self._get_json(f"spaces/{self.resolve_space(space)}/agents", List[Agent])

    def create_agent(
        self,
        space: str,
        name: str,
        description: Optional[str] = None,
        purpose: Optional[str] = None,
        source_repo: Optional[str] = None,
        source_branch: Optional[str] = None,
    ) -> Agent:
        body = _body(name=name, description=description, purpose=purpose, source_repo=source_repo, source_branch=source_branch)
        return self._post_json(f"spaces/{space}/agents", body, Agent)

    def get_agent(self, space: str, agent_name: str) -> Agent:
        return self._get_json(f"spaces/{space}/agents/{agent_name}", Agent)

    def update_agent(self, space: str, agent_name: str, description: Optional[str] = None, purpose: Optional[str] = None) -> Agent:
        return self._put_json(f"spaces/{space}/agents/{agent_name}", _body(description=description, purpose=purpose), Agent)

    def delete_agent(self, space: str, agent_name: str) -> None:
        self._delete(f"spaces/{space}/agents/{agent_name}")

    def update_agent_status(self, space: str, agent_name: str, status: str) -> Agent:
        return self._put_json(f"spaces/{space}/agents/{agent_name}/status", {"status": status}, Agent)

    def deploy_agent(self, space: str, agent_name: str) -> None:
        self._action("POST", f"spaces/{space}/agents/{agent_name}/deploy")

    def stop_agent(self, space: str, agent_name: str) -> None:
        self._action("POST", f"spaces/{space}/agents/{agent_name}/stop")

    def list_running_agents(self, space: str) -> List[Agent]:
        return self._get_json(f"spaces/{space}/agents/running", List[Agent])

    def get_agent_logs(self, space: str, agent_name: str) -> str:
        return self._get_text(f"spaces/{space}/agents/{agent_name}/logs")

    # Secrets

    def list_secrets(self, space: Optional[str] = None) -> List[Secret]:
        return self._get_json(f"spaces/{self.resolve_space(space)}/secrets", List[Secret])

    def create_secret(self, space: str, key_name: str, value: str, description: Optional[str] = None) -> Secret:
        body = _body(key_name=key_name, value=value, description=description)
        return self._post_json(f"spaces/{space}/secrets", body, Secret)

    def get_secret(self, space: str, key: str) -> Secret:
        return self._get_json(f"spaces/{space}/secrets/{key}", Secret)

    def update_secret(self, space: str, key: str, value: Optional[str] = None, description: Optional[str] = None) -> Secret:
        return self._put_json(f"spaces/{space}/secrets/{key}", _body(value=value, description=description), Secret)

    def delete_secret(self, space: str, key: str) -> None:
        self._delete(f"spaces/{space}/secrets/{key}")

    # Builds

    def create_build(self, space: str, dockerfile: Optional[str] = None, context: Optional[str] = None) -> Build:
        return self._post_json(f"spaces/{space}/build", _body(dockerfile=dockerfile, context=context), Build)

    def get_latest_build(self, space: str) -> Build:
        return self._get_json(f"spaces/{space}/build/latest", Build)

    def get_build(self, space: str, build_id: str) -> Build:
        return self._get_json(f"spaces/{space}/build/{build_id}", Build)

    # Service accounts

    def list_service_accounts(self) -> List[ServiceAccount]:
        return self._get_json("service-accounts", List[ServiceAccount])

    def create_service_account(
        self, user: str, password: str, space: Optional[str] = None, description: Optional[str] = None
    ) -> ServiceAccount:
        body = _body(user=user, space=space, description=description)
        body["pass"] = password
        return self._post_json("service-accounts", body, ServiceAccount)

    def get_service_account(self, account_id: str) -> ServiceAccount:
        return self._get_json(f"service-accounts/{account_id}", ServiceAccount)

    def update_service_account(
        self,
        account_id: str,
        space: Optional[str] = None,
        description: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> ServiceAccount:
        body = _body(space=space, description=description, active=active)
        return self._put_json(f"service-accounts/{account_id}", body, ServiceAccount)

    def delete_service_account(self, account_id: str) -> None:
        self._delete(f"service-accounts/{account_id}")

    def update_service_account_password(self, account_id: str, current_password: str, new_password: str) -> None:
        body = {"current_password": current_password, "new_password": new_password}
        self._action("PUT", f"service-accounts/{account_id}/password", body)

    # Roles

    def list_roles(self) -> List[Role]:
        return self._get_json("roles", List[Role])

    def create_role(self, role_id: str, rules: List[Dict[str, Any]], description: Optional[str] = None) -> Role:
        return self._post_json("roles", _body(id=role_id, description=description, rules=rules), Role)

    def get_role(self, role_id: str) -> Role:
        return self._get_json(f"roles/{role_id}", Role)

    def delete_role(self, role_id: str) -> None:
        self._delete(f"roles/{role_id}")

    # Role bindings

    def list_role_bindings(self) -> List[RoleBinding]:
        return self._get_json("role-bindings", List[RoleBinding])

    def create_role_binding(self, subject: str, role_ref: str, space: Optional[str] = None) -> RoleBinding:
        return self._post_json("role-bindings", _body(subject=subject, role_ref=role_ref, space=space), RoleBinding)

    def get_role_binding(self, binding_id: str) -> RoleBinding:
        return self._get_json(f"role-bindings/{binding_id}", RoleBinding)

    def delete_role_binding(self, binding_id: str) -> None:
        self._delete(f"role-bindings/{binding_id}")
