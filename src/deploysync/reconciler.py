"""Reconciliation of declared resources against the control plane.

Each resource kind has a reconciler exposing create, read, update, delete
and plan. The host orchestrator supplies the declared value and, where
relevant, the prior stored state; it gets back a ReconcileResult carrying
the new state and structured diagnostics. Nothing raises out of these
methods: every failure becomes a diagnostic.

PIPELINE:
1. Validate the declared value (ValidationError, before any remote call)
2. Consult the mutability table (replace / reject / update)
3. Call the gateway
4. Flatten the response into the local shape
5. Merge with the prior value to recover remote-silent fields

LIFECYCLE (container and job deployments):
    ABSENT -> CREATING -> PRESENT -> UPDATING -> PRESENT
                                  -> DELETING -> POLLING -> ABSENT
Kinds without an update endpoint never enter UPDATING; update returns an
unsupported_operation error instead of emulating it with destroy+recreate.

CONCURRENCY:
Reconcilers hold only the gateway, the configuration and the poller, none
of which change after construction. One instance may serve many resource
identities from many threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel

from .config import Config
from .errors import (
    ClientError,
    DeploySyncError,
    GatewayTimeoutError,
    NotFoundError,
    OperationCancelledError,
    PollCancelledError,
    PollTimeoutError,
    RequiresReplaceError,
    UnsupportedOperationError,
    ValidationError,
    is_not_found_error,
)
from .flattener import (
    flatten_deployment,
    flatten_job,
    flatten_registry_credentials,
    flatten_scaling,
    flatten_secret,
)
from .gateway import REGISTRY_CREDENTIALS_PATH, SECRETS_PATH, Gateway
from .merger import MergeResult, merge
from .models import (
    ContainerEnvVarsSpec,
    ContainerScalingSpec,
    DeploymentAction,
    DeploymentSpec,
    JobAction,
    JobDeploymentSpec,
    RegistryCredentialsSpec,
    SecretSpec,
    parse_declared,
)
from .mutability import (
    CONTAINER_DEPLOYMENT_POLICY,
    CONTAINER_ENV_VARS_POLICY,
    CONTAINER_SCALING_POLICY,
    DEPLOYMENT_ACTION_POLICY,
    JOB_ACTION_POLICY,
    JOB_DEPLOYMENT_POLICY,
    REGISTRY_CREDENTIALS_POLICY,
    SECRET_POLICY,
    ChangeAction,
    ChangePlan,
    ResourcePolicy,
    plan_change,
    resolve_unknowns,
    wire_fields,
)
from .poller import CancellationToken, Clock, DeletionPoller
from .remote import RemoteRegistryCredentials, RemoteSecret, find_by_name, parse_list
from .scaling import build_scaling_update, fill_unmentioned_triggers

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class DiagnosticKind(str, Enum):
    """Machine-readable failure category."""

    VALIDATION = "validation"
    CLIENT = "client"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    POLL_TIMEOUT = "poll_timeout"
    CANCELLED = "cancelled"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    REQUIRES_REPLACE = "requires_replace"


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    PLAN = "plan"


class LifecycleState(str, Enum):
    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETING = "deleting"
    POLLING = "polling"


def classify_error(err: BaseException) -> DiagnosticKind:
    """Map an exception onto a diagnostic kind."""
    match err:
        case ValidationError():
            return DiagnosticKind.VALIDATION
        case PollTimeoutError():
            return DiagnosticKind.POLL_TIMEOUT
        case PollCancelledError() | OperationCancelledError():
            return DiagnosticKind.CANCELLED
        case UnsupportedOperationError():
            return DiagnosticKind.UNSUPPORTED_OPERATION
        case RequiresReplaceError():
            return DiagnosticKind.REQUIRES_REPLACE
        case NotFoundError():
            return DiagnosticKind.NOT_FOUND
        case GatewayTimeoutError():
            return DiagnosticKind.TIMEOUT
        case _:
            return DiagnosticKind.CLIENT


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal warning or fatal error reported to the orchestrator."""

    severity: Severity
    kind: DiagnosticKind
    summary: str
    detail: str = ""

    @classmethod
    def from_error(cls, summary: str, err: BaseException) -> Diagnostic:
        return cls(
            severity=Severity.ERROR,
            kind=classify_error(err),
            summary=summary,
            detail=str(err),
        )


@dataclass
class ReconcileResult:
    """Result of a single reconciler operation.

    Attributes:
        resource: ``<kind>/<identity>`` of the resource.
        operation: Which operation produced this result.
        state: New local state to persist. None once the resource is gone.
        removed: True when the orchestrator should drop the resource from
            tracked state (confirmed delete, or not found on read).
        lifecycle: Lifecycle state reached.
        plan: Change plan, when one was computed.
        diagnostics: Warnings and errors, in order of occurrence.
    """

    resource: str
    operation: Operation
    state: dict[str, Any] | None = None
    removed: bool = False
    lifecycle: LifecycleState = LifecycleState.ABSENT
    plan: ChangePlan | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def has_error(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.diagnostics)

    @property
    def success(self) -> bool:
        """Check if the operation succeeded (warnings allowed)."""
        return not self.has_error

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    def add_error(self, summary: str, err: BaseException) -> None:
        self.diagnostics.append(Diagnostic.from_error(summary, err))

    def add_warning(self, summary: str, detail: str = "") -> None:
        self.diagnostics.append(
            Diagnostic(
                severity=Severity.WARNING,
                kind=DiagnosticKind.CLIENT,
                summary=summary,
                detail=detail,
            )
        )


class ResourceReconciler:
    """Base reconciler: validation, error capture and result bookkeeping.

    Subclasses set ``spec_class``/``policy`` and implement the ``_create``,
    ``_read``, ``_update`` and ``_delete`` hooks. Hooks raise; the public
    methods convert whatever they raise into diagnostics.
    """

    spec_class: ClassVar[type[BaseModel]]
    policy: ClassVar[ResourcePolicy]
    identity_field: ClassVar[str] = "name"

    def __init__(
        self,
        gateway: Gateway,
        config: Config | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config or Config()
        self._poller = DeletionPoller.from_config(self._config, clock)

    @property
    def kind(self) -> str:
        return self.policy.kind

    @property
    def poller(self) -> DeletionPoller:
        return self._poller

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def create(self, declared: Any) -> ReconcileResult:
        """Create the resource from its declared configuration."""
        result = self._begin(Operation.CREATE, declared)

        def step() -> None:
            spec = self._parse(declared)
            result.lifecycle = LifecycleState.CREATING
            logger.info("Creating resource", extra={"resource": result.resource})
            self._create(spec, result)

        return self._run(result, f"Unable to create {self.kind}", step)

    def read(self, prior: dict[str, Any]) -> ReconcileResult:
        """Refresh stored state from the control plane."""
        result = self._begin(Operation.READ, prior)
        result.lifecycle = LifecycleState.PRESENT

        def step() -> None:
            try:
                self._read(prior, result)
            except DeploySyncError as e:
                if not is_not_found_error(e):
                    raise
                logger.info(
                    "Resource no longer exists remotely, removing from state",
                    extra={"resource": result.resource},
                )
                result.state = None
                result.removed = True
                result.lifecycle = LifecycleState.ABSENT

        return self._run(result, f"Unable to read {self.kind}", step)

    def update(self, declared: Any, prior: dict[str, Any]) -> ReconcileResult:
        """Apply a declared change in place.

        Kinds without an update endpoint return an unsupported_operation
        error. A change to a replace-only field returns a requires_replace
        error; the orchestrator then destroys and recreates.
        """
        result = self._begin(Operation.UPDATE, prior)
        result.lifecycle = LifecycleState.PRESENT

        def step() -> None:
            spec = self._parse(declared)
            if not self.policy.updatable:
                raise UnsupportedOperationError(
                    f"{self.kind} cannot be updated in place; "
                    "replace the resource to apply a changed configuration"
                )
            plan = self._plan(spec, prior)
            result.plan = plan
            if plan.action is ChangeAction.REPLACE:
                raise RequiresReplaceError(
                    f"Changing {', '.join(plan.replace_fields)} requires replacing "
                    f"{result.resource}",
                    fields=list(plan.replace_fields),
                )
            result.lifecycle = LifecycleState.UPDATING
            logger.info(
                "Updating resource",
                extra={"resource": result.resource, "changed_fields": list(plan.changed)},
            )
            self._update(spec, prior, result)
            result.lifecycle = LifecycleState.PRESENT

        return self._run(result, f"Unable to update {self.kind}", step)

    def delete(
        self, prior: dict[str, Any], cancel: CancellationToken | None = None
    ) -> ReconcileResult:
        """Delete the resource and, where the kind requires it, confirm removal."""
        result = self._begin(Operation.DELETE, prior)
        result.lifecycle = LifecycleState.PRESENT

        def step() -> None:
            result.lifecycle = LifecycleState.DELETING
            logger.info("Deleting resource", extra={"resource": result.resource})
            self._delete(prior, cancel, result)
            result.state = None
            result.removed = True
            result.lifecycle = LifecycleState.ABSENT

        return self._run(result, f"Unable to delete {self.kind}", step)

    def plan(self, declared: Any, prior: dict[str, Any]) -> ReconcileResult:
        """Compute the change plan without touching the control plane."""
        result = self._begin(Operation.PLAN, prior)
        result.lifecycle = LifecycleState.PRESENT

        def step() -> None:
            result.plan = self._plan(self._parse(declared), prior)

        return self._run(result, f"Unable to plan {self.kind}", step)

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _create(self, spec: Any, result: ReconcileResult) -> None:
        raise NotImplementedError

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        raise NotImplementedError

    def _update(self, spec: Any, prior: dict[str, Any], result: ReconcileResult) -> None:
        raise UnsupportedOperationError(f"{self.kind} cannot be updated in place")

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        raise NotImplementedError

    def _declared_dict(self, spec: BaseModel, prior: dict[str, Any] | None) -> dict[str, Any]:
        """Local-shape dict of the declared value, ready for diff and merge."""
        return spec.model_dump(mode="json", exclude_none=True)

    def _plan(self, spec: BaseModel, prior: dict[str, Any]) -> ChangePlan:
        return plan_change(prior, self._declared_dict(spec, prior), self.policy)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _parse(self, declared: Any) -> Any:
        return parse_declared(self.spec_class, declared)

    def _request_spec(self, planned: dict[str, Any]) -> Any:
        """Rebuild the declared model from a plan, dropping Computed-only fields."""
        return self.spec_class.model_validate(wire_fields(planned, self.policy))

    def _identity(self, value: Any) -> str:
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, dict):
            return str(value.get(self.identity_field) or "")
        return ""

    def _begin(self, operation: Operation, value: Any) -> ReconcileResult:
        result = ReconcileResult(
            resource=f"{self.kind}/{self._identity(value)}",
            operation=operation,
        )
        if operation is not Operation.CREATE and isinstance(value, dict):
            result.state = dict(value)
        return result

    def _merge(
        self, prior: dict[str, Any], remote: dict[str, Any], result: ReconcileResult
    ) -> dict[str, Any]:
        merged: MergeResult = merge(prior, remote)
        for path in merged.fallbacks:
            result.add_warning(
                f"Remote items for {path} do not line up with the declared list by "
                "position; kept the declared list",
                detail="Items are matched by position, so remote drift in this list "
                "cannot be detected until the counts and kinds agree.",
            )
        return merged.value

    def _run(
        self, result: ReconcileResult, summary: str, step: Callable[[], None]
    ) -> ReconcileResult:
        try:
            step()
        except DeploySyncError as e:
            result.add_error(summary, e)
            logger.error(
                summary,
                extra={
                    "resource": result.resource,
                    "operation": result.operation.value,
                    "kind": classify_error(e).value,
                    "error": str(e),
                },
            )
        except Exception as e:
            result.add_error(summary, ClientError(f"unexpected error: {e}"))
            logger.exception(
                summary,
                extra={"resource": result.resource, "operation": result.operation.value},
            )
        finally:
            result.end_time = datetime.now(UTC)
        return result


# =============================================================================
# Container deployments
# =============================================================================


class ContainerDeploymentReconciler(ResourceReconciler):
    """Container deployments, with scaling read-modify-write and delete polling."""

    spec_class = DeploymentSpec
    policy = CONTAINER_DEPLOYMENT_POLICY

    def _declared_dict(self, spec: BaseModel, prior: dict[str, Any] | None) -> dict[str, Any]:
        declared = spec.model_dump(mode="json", exclude_none=True)
        if prior and prior.get("scaling"):
            declared["scaling"] = fill_unmentioned_triggers(declared["scaling"], prior["scaling"])
        return declared

    def _create(self, spec: DeploymentSpec, result: ReconcileResult) -> None:
        declared = self._declared_dict(spec, None)
        remote = self._gateway.create_deployment(self._request_spec(declared).to_create_request())
        name = remote.name or spec.name

        # Identity is known from here on; record it before anything else can fail.
        result.resource = f"{self.kind}/{name}"
        result.state = self._merge(declared, flatten_deployment(remote), result)
        result.state["name"] = name
        result.lifecycle = LifecycleState.PRESENT

        try:
            scaling = self._gateway.get_scaling(name)
        except DeploySyncError as e:
            raise ClientError(
                f"deployment {name} was created but its scaling configuration could not be "
                f"read: {e}",
                status_code=getattr(e, "status_code", None),
                operation="get_scaling",
            ) from e
        result.state = self._merge(result.state, {"scaling": flatten_scaling(scaling)}, result)

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        name = prior["name"]
        remote = self._gateway.get_deployment(name)
        scaling = self._gateway.get_scaling(name)
        flattened = flatten_deployment(remote)
        flattened["scaling"] = flatten_scaling(scaling)
        result.state = self._merge(prior, flattened, result)

    def _update(self, spec: DeploymentSpec, prior: dict[str, Any], result: ReconcileResult) -> None:
        name = prior["name"]
        planned = resolve_unknowns(self._declared_dict(spec, prior), prior, self.policy)

        try:
            current_scaling = self._gateway.get_scaling(name)
        except DeploySyncError as e:
            raise ClientError(
                f"could not read current scaling configuration of {name}; update aborted "
                f"so unmentioned triggers are not disabled: {e}",
                status_code=getattr(e, "status_code", None),
                operation="get_scaling",
            ) from e

        request_spec: DeploymentSpec = self._request_spec(planned)
        scaling_body = build_scaling_update(spec.scaling, current_scaling)
        remote = self._gateway.update_deployment(
            name, request_spec.to_update_request(scaling=scaling_body)
        )

        # The update is applied remotely from here on; record it first.
        result.state = self._merge(planned, flatten_deployment(remote), result)
        result.lifecycle = LifecycleState.PRESENT

        try:
            scaling = self._gateway.get_scaling(name)
        except DeploySyncError as e:
            raise ClientError(
                f"deployment {name} was updated but its scaling configuration could not be "
                f"read back: {e}",
                status_code=getattr(e, "status_code", None),
                operation="get_scaling",
            ) from e
        result.state = self._merge(result.state, {"scaling": flatten_scaling(scaling)}, result)

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        name = prior["name"]
        result.lifecycle = LifecycleState.POLLING
        self._poller.run(
            delete_call=lambda: self._gateway.delete_deployment(
                name, self._config.delete_timeout_ms
            ),
            probe=lambda: self._gateway.get_deployment(name),
            cancel=cancel,
            resource=result.resource,
        )


# =============================================================================
# Serverless jobs
# =============================================================================


class JobDeploymentReconciler(ResourceReconciler):
    """Serverless job deployments. The control plane has no update endpoint."""

    spec_class = JobDeploymentSpec
    policy = JOB_DEPLOYMENT_POLICY

    def _create(self, spec: JobDeploymentSpec, result: ReconcileResult) -> None:
        declared = self._declared_dict(spec, None)
        remote = self._gateway.create_job(self._request_spec(declared).to_create_request())
        name = remote.name or spec.name
        result.resource = f"{self.kind}/{name}"
        result.state = self._merge(declared, flatten_job(remote), result)
        result.state["name"] = name
        result.lifecycle = LifecycleState.PRESENT

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        remote = self._gateway.get_job(prior["name"])
        result.state = self._merge(prior, flatten_job(remote), result)

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        name = prior["name"]
        result.lifecycle = LifecycleState.POLLING
        self._poller.run(
            delete_call=lambda: self._gateway.delete_job(name, self._config.job_delete_timeout_ms),
            probe=lambda: self._gateway.get_job(name),
            cancel=cancel,
            resource=result.resource,
        )


# =============================================================================
# Secrets and registry credentials
# =============================================================================


class _ListedResourceReconciler(ResourceReconciler):
    """Resources created by POST and read back from a list endpoint.

    Their sensitive fields are write-only, so the merge keeps them from the
    declared value. Deletion is synchronous.
    """

    collection_path: ClassVar[str]
    remote_class: ClassVar[type[RemoteSecret] | type[RemoteRegistryCredentials]]

    def _flatten(self, remote: Any) -> dict[str, Any]:
        raise NotImplementedError

    def _find(self, name: str) -> Any:
        response = self._gateway.execute("GET", self.collection_path)
        return find_by_name(parse_list(self.remote_class, response.body), name)

    def _create(self, spec: Any, result: ReconcileResult) -> None:
        declared = self._declared_dict(spec, None)
        self._gateway.execute(
            "POST", self.collection_path, self._request_spec(declared).to_create_request()
        )
        result.state = declared
        result.lifecycle = LifecycleState.PRESENT

        remote = self._find(spec.name)
        if remote is None:
            result.add_warning(
                f"{self.kind} {spec.name} was created but is not listed yet",
                detail="Computed fields stay unknown until the next read.",
            )
            return
        result.state = self._merge(declared, self._flatten(remote), result)

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        name = prior["name"]
        remote = self._find(name)
        if remote is None:
            raise NotFoundError(f"{self.kind} {name} not found", operation="list")
        result.state = self._merge(prior, self._flatten(remote), result)

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        self._gateway.execute("DELETE", f"{self.collection_path}/{prior['name']}")


class SecretReconciler(_ListedResourceReconciler):
    spec_class = SecretSpec
    policy = SECRET_POLICY
    collection_path = SECRETS_PATH
    remote_class = RemoteSecret

    def _flatten(self, remote: Any) -> dict[str, Any]:
        return flatten_secret(remote)


class RegistryCredentialsReconciler(_ListedResourceReconciler):
    spec_class = RegistryCredentialsSpec
    policy = REGISTRY_CREDENTIALS_POLICY
    collection_path = REGISTRY_CREDENTIALS_PATH
    remote_class = RemoteRegistryCredentials

    def _flatten(self, remote: Any) -> dict[str, Any]:
        return flatten_registry_credentials(remote)


# =============================================================================
# Standalone scaling and actions
# =============================================================================


class ContainerScalingReconciler(ResourceReconciler):
    """Scaling configuration of an existing deployment, managed on its own.

    Create and update both apply the read-modify-write protocol. Delete only
    forgets the resource: scaling cannot exist without its deployment.
    """

    spec_class = ContainerScalingSpec
    policy = CONTAINER_SCALING_POLICY
    identity_field = "deployment_name"

    def _declared_dict(self, spec: BaseModel, prior: dict[str, Any] | None) -> dict[str, Any]:
        declared = spec.model_dump(mode="json", exclude_none=True)
        return fill_unmentioned_triggers(declared, prior)

    def _apply(
        self, spec: ContainerScalingSpec, planned: dict[str, Any], result: ReconcileResult
    ) -> None:
        name = spec.deployment_name
        current = self._gateway.get_scaling(name)
        self._gateway.update_scaling(name, build_scaling_update(spec.scaling(), current))
        scaling = self._gateway.get_scaling(name)
        result.state = self._merge(planned, flatten_scaling(scaling), result)
        result.lifecycle = LifecycleState.PRESENT

    def _create(self, spec: ContainerScalingSpec, result: ReconcileResult) -> None:
        self._apply(spec, self._declared_dict(spec, None), result)

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        scaling = self._gateway.get_scaling(prior["deployment_name"])
        result.state = self._merge(prior, flatten_scaling(scaling), result)

    def _update(
        self, spec: ContainerScalingSpec, prior: dict[str, Any], result: ReconcileResult
    ) -> None:
        planned = resolve_unknowns(self._declared_dict(spec, prior), prior, self.policy)
        self._apply(spec, planned, result)

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        logger.info(
            "Scaling removed from state only; the deployment keeps its current scaling",
            extra={"resource": result.resource},
        )


class _ActionRunner(ResourceReconciler):
    """One-shot action. Create runs it; read and delete only touch state."""

    def _perform(self, target: str, action: str) -> None:
        raise NotImplementedError

    def _create(self, spec: Any, result: ReconcileResult) -> None:
        target = self._identity(spec)
        self._perform(target, spec.action)
        state = self._declared_dict(spec, None)
        state["id"] = f"{target}:{spec.action}"
        result.state = state
        result.lifecycle = LifecycleState.PRESENT

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        result.state = dict(prior)

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        logger.debug("Action removed from state", extra={"resource": result.resource})


class DeploymentActionRunner(_ActionRunner):
    """Lifecycle action on a container deployment (pause, resume, restart, purge_queue)."""

    spec_class = DeploymentAction
    policy = DEPLOYMENT_ACTION_POLICY
    identity_field = "deployment_name"

    def _perform(self, target: str, action: str) -> None:
        self._gateway.run_action(target, action)


class JobActionRunner(_ActionRunner):
    """Lifecycle action on a serverless job (pause, resume, purge_queue)."""

    spec_class = JobAction
    policy = JOB_ACTION_POLICY
    identity_field = "job_name"

    def _perform(self, target: str, action: str) -> None:
        self._gateway.run_job_action(target, action)


# =============================================================================
# Container environment variables
# =============================================================================


class ContainerEnvVarsReconciler(ResourceReconciler):
    """Environment variables of one named container, managed on their own.

    The control plane does not report them per container, so read only
    checks that the deployment still exists and otherwise keeps prior state.
    Update replaces the whole list; delete removes exactly the tracked names.
    """

    spec_class = ContainerEnvVarsSpec
    policy = CONTAINER_ENV_VARS_POLICY

    def _identity(self, value: Any) -> str:
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if not isinstance(value, dict):
            return ""
        return f"{value.get('deployment_name') or ''}/{value.get('container_name') or ''}"

    def _state(self, planned: dict[str, Any]) -> dict[str, Any]:
        state = dict(planned)
        state["id"] = self._identity(planned)
        return state

    def _create(self, spec: ContainerEnvVarsSpec, result: ReconcileResult) -> None:
        declared = self._declared_dict(spec, None)
        self._gateway.add_env_vars(spec.deployment_name, self._request_spec(declared).to_request())
        result.state = self._state(declared)
        result.lifecycle = LifecycleState.PRESENT

    def _read(self, prior: dict[str, Any], result: ReconcileResult) -> None:
        self._gateway.get_deployment(prior["deployment_name"])
        result.state = dict(prior)

    def _update(
        self, spec: ContainerEnvVarsSpec, prior: dict[str, Any], result: ReconcileResult
    ) -> None:
        planned = resolve_unknowns(self._declared_dict(spec, prior), prior, self.policy)
        self._gateway.update_env_vars(
            spec.deployment_name, self._request_spec(planned).to_request()
        )
        result.state = self._state(planned)

    def _delete(
        self,
        prior: dict[str, Any],
        cancel: CancellationToken | None,
        result: ReconcileResult,
    ) -> None:
        tracked = self._request_spec(prior)
        self._gateway.delete_env_vars(tracked.deployment_name, tracked.to_request())



RECONCILERS: dict[str, type[ResourceReconciler]] = {
    cls.policy.kind: cls
    for cls in (
        ContainerDeploymentReconciler,
        JobDeploymentReconciler,
        SecretReconciler,
        RegistryCredentialsReconciler,
        ContainerScalingReconciler,
        DeploymentActionRunner,
        JobActionRunner,
        ContainerEnvVarsReconciler,
    )
}


def reconciler_for(
    kind: str,
    gateway: Gateway,
    config: Config | None = None,
    clock: Clock | None = None,
) -> ResourceReconciler:
    """Build the reconciler for a resource kind.

    Raises:
        ValueError: If kind is not recognized.
    """
    reconciler_class = RECONCILERS.get(kind)
    if reconciler_class is None:
        raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {list(RECONCILERS.keys())}")
    return reconciler_class(gateway, config=config, clock=clock)
