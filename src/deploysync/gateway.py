"""Remote gateway to the container control plane.

The reconciler only talks to the control plane through the ``Gateway``
protocol, so tests can substitute an in-memory fake. ``HttpGateway`` is the
production implementation over a shared ``httpx.Client``.

Responses are parsed into the models in ``remote.py``. HTTP failures are
mapped onto the error taxonomy in ``errors.py``:
- 404 -> NotFoundError
- 504 or a transport timeout -> GatewayTimeoutError
- any other status >= 400 or transport failure -> ClientError

The gateway holds no per-resource state and is safe to share.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Protocol

import httpx

from .config import Config
from .errors import ClientError, GatewayTimeoutError, NotFoundError
from .remote import RemoteDeployment, RemoteJobDeployment, RemoteScaling

logger = logging.getLogger(__name__)

DEPLOYMENTS_PATH = "/container-deployments"
JOBS_PATH = "/job-deployments"
SECRETS_PATH = "/secrets"
REGISTRY_CREDENTIALS_PATH = "/container-registry-credentials"

# Maximum response body echoed into an error message
MAX_ERROR_BODY_CHARS = 500


@dataclass(frozen=True)
class GatewayResponse:
    """Raw result of a generic ``execute`` call."""

    status_code: int
    body: Any = None


class Gateway(Protocol):
    """Typed operations against the control plane."""

    def create_deployment(self, body: dict[str, Any]) -> RemoteDeployment: ...

    def get_deployment(self, name: str) -> RemoteDeployment: ...

    def update_deployment(self, name: str, body: dict[str, Any]) -> RemoteDeployment: ...

    def delete_deployment(self, name: str, timeout_ms: int) -> None: ...

    def get_scaling(self, name: str) -> RemoteScaling: ...

    def update_scaling(self, name: str, body: dict[str, Any]) -> RemoteScaling: ...

    def add_env_vars(self, name: str, body: dict[str, Any]) -> None: ...

    def update_env_vars(self, name: str, body: dict[str, Any]) -> None: ...

    def delete_env_vars(self, name: str, body: dict[str, Any]) -> None: ...

    def create_job(self, body: dict[str, Any]) -> RemoteJobDeployment: ...

    def get_job(self, name: str) -> RemoteJobDeployment: ...

    def delete_job(self, name: str, timeout_ms: int) -> None: ...

    def run_action(self, name: str, action: str) -> None: ...

    def run_job_action(self, name: str, action: str) -> None: ...

    def execute(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> GatewayResponse: ...


class HttpGateway:
    """Gateway implementation over HTTP.

    Usage:
        with HttpGateway.from_config(config) as gateway:
            deployment = gateway.get_deployment("inference")
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout_seconds: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: Config, transport: httpx.BaseTransport | None = None
    ) -> HttpGateway:
        return cls(
            base_url=config.api_url,
            token=config.api_token,
            timeout_seconds=config.request_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpGateway:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Container deployments
    # -------------------------------------------------------------------------

    def create_deployment(self, body: dict[str, Any]) -> RemoteDeployment:
        data = self._request("POST", DEPLOYMENTS_PATH, "create_deployment", json=body)
        return RemoteDeployment.model_validate(data)

    def get_deployment(self, name: str) -> RemoteDeployment:
        data = self._request("GET", f"{DEPLOYMENTS_PATH}/{name}", "get_deployment")
        return RemoteDeployment.model_validate(data)

    def update_deployment(self, name: str, body: dict[str, Any]) -> RemoteDeployment:
        data = self._request(
            "PATCH", f"{DEPLOYMENTS_PATH}/{name}", "update_deployment", json=body
        )
        return RemoteDeployment.model_validate(data)

    def delete_deployment(self, name: str, timeout_ms: int) -> None:
        self._request(
            "DELETE",
            f"{DEPLOYMENTS_PATH}/{name}",
            "delete_deployment",
            params={"timeout": timeout_ms},
        )

    def get_scaling(self, name: str) -> RemoteScaling:
        data = self._request("GET", f"{DEPLOYMENTS_PATH}/{name}/scaling", "get_scaling")
        return RemoteScaling.model_validate(data)

    def update_scaling(self, name: str, body: dict[str, Any]) -> RemoteScaling:
        data = self._request(
            "PATCH", f"{DEPLOYMENTS_PATH}/{name}/scaling", "update_scaling", json=body
        )
        return RemoteScaling.model_validate(data or {})

    def run_action(self, name: str, action: str) -> None:
        self._request("POST", f"{DEPLOYMENTS_PATH}/{name}/{action}", f"run_action:{action}")

    def add_env_vars(self, name: str, body: dict[str, Any]) -> None:
        self._request("POST", _env_vars_path(name), "add_env_vars", json=body)

    def update_env_vars(self, name: str, body: dict[str, Any]) -> None:
        self._request("PATCH", _env_vars_path(name), "update_env_vars", json=body)

    def delete_env_vars(self, name: str, body: dict[str, Any]) -> None:
        self._request("DELETE", _env_vars_path(name), "delete_env_vars", json=body)

    # -------------------------------------------------------------------------
    # Serverless jobs
    # -------------------------------------------------------------------------

    def create_job(self, body: dict[str, Any]) -> RemoteJobDeployment:
        data = self._request("POST", JOBS_PATH, "create_job", json=body)
        return RemoteJobDeployment.model_validate(data)

    def get_job(self, name: str) -> RemoteJobDeployment:
        data = self._request("GET", f"{JOBS_PATH}/{name}", "get_job")
        return RemoteJobDeployment.model_validate(data)

    def delete_job(self, name: str, timeout_ms: int) -> None:
        self._request(
            "DELETE", f"{JOBS_PATH}/{name}", "delete_job", params={"timeout": timeout_ms}
        )

    def run_job_action(self, name: str, action: str) -> None:
        self._request("POST", f"{JOBS_PATH}/{name}/{action}", f"run_job_action:{action}")

    # -------------------------------------------------------------------------
    # Generic
    # -------------------------------------------------------------------------

    def execute(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> GatewayResponse:
        """Issue an ad-hoc request for endpoints without a typed operation."""
        response = self._send(method.upper(), path, f"execute:{method.upper()} {path}", json=body)
        return GatewayResponse(status_code=response.status_code, body=_decode(response))

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        return _decode(self._send(method, path, operation, **kwargs))

    def _send(self, method: str, path: str, operation: str, **kwargs: Any) -> httpx.Response:
        logger.debug(
            "Control-plane request",
            extra={"method": method, "path": path, "operation": operation},
        )
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError(
                f"{operation} timed out: {e}", operation=operation
            ) from e
        except httpx.HTTPError as e:
            raise ClientError(f"{operation} failed: {e}", operation=operation) from e

        if response.status_code >= 400:
            raise _error_for_response(response, operation)
        return response


def _env_vars_path(name: str) -> str:
    return f"{DEPLOYMENTS_PATH}/{name}/environment-variables"

def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_for_response(response: httpx.Response, operation: str) -> ClientError:
    """Map an HTTP failure onto the error taxonomy."""
    message = response.text[:MAX_ERROR_BODY_CHARS] or response.reason_phrase
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = str(data.get("message") or data.get("error") or message)

    status = response.status_code
    logger.debug(
        "Control-plane error response",
        extra={"operation": operation, "status_code": status},
    )
    if status == HTTPStatus.NOT_FOUND:
        return NotFoundError(message, status_code=status, operation=operation)
    if status == HTTPStatus.GATEWAY_TIMEOUT:
        return GatewayTimeoutError(message, status_code=status, operation=operation)
    return ClientError(message, status_code=status, operation=operation)
