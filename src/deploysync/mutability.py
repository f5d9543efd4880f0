"""Per-field mutability classification.

Each resource kind has a declarative table describing, for every top-level
field, whether the caller must supply it, whether changing it forces a
destroy+recreate, and whether its value is only known after a remote call.
The same table drives three decisions:
- which fields are sent on the wire (Computed-only fields never are),
- which unknown planned values are filled in from prior state,
- whether a declared change is applied in place, forces replacement, or is
  rejected because the kind has no update endpoint.

Flags compose. Examples:
    REQUIRED | REQUIRES_REPLACE         identity fields such as ``name``
    OPTIONAL | COMPUTED | RETAIN_...    caller may set it, remote fills it in
    COMPUTED | RETAIN_PRIOR_WHEN_UNKNOWN  remote-derived, e.g. ``created_at``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import Any

from .merger import normalize_disabled

logger = logging.getLogger(__name__)


class Mutability(Flag):
    """Composable field classification flags."""

    NONE = 0
    REQUIRED = auto()
    OPTIONAL = auto()
    REQUIRES_REPLACE = auto()
    COMPUTED = auto()
    RETAIN_PRIOR_WHEN_UNKNOWN = auto()


class ChangeAction(str, Enum):
    """Outcome of comparing a declared value with prior state."""

    NO_CHANGE = "no_change"
    UPDATE = "update"
    REPLACE = "replace"
    REJECT = "reject"


@dataclass(frozen=True)
class FieldPolicy:
    name: str
    flags: Mutability
    reason: str = ""

    @property
    def is_computed_only(self) -> bool:
        """Remote-derived and never settable by the caller."""
        return Mutability.COMPUTED in self.flags and not (
            self.flags & (Mutability.REQUIRED | Mutability.OPTIONAL)
        )

    @property
    def requires_replace(self) -> bool:
        return Mutability.REQUIRES_REPLACE in self.flags

    @property
    def retains_prior(self) -> bool:
        return Mutability.RETAIN_PRIOR_WHEN_UNKNOWN in self.flags or self.is_computed_only


@dataclass(frozen=True)
class ResourcePolicy:
    """Mutability table for one resource kind.

    Attributes:
        kind: Resource kind name.
        fields: Field policies keyed by local field name.
        updatable: Whether the control plane has an update endpoint.
    """

    kind: str
    fields: dict[str, FieldPolicy]
    updatable: bool

    def get(self, name: str) -> FieldPolicy | None:
        return self.fields.get(name)


@dataclass(frozen=True)
class ChangePlan:
    """Planned action for a declared change.

    Attributes:
        action: What the reconciler should do.
        changed: Fields whose declared value differs from prior state.
        replace_fields: Changed fields that cannot be updated in place.
    """

    action: ChangeAction
    changed: tuple[str, ...] = ()
    replace_fields: tuple[str, ...] = ()


def _table(kind: str, updatable: bool, *policies: FieldPolicy) -> ResourcePolicy:
    return ResourcePolicy(kind=kind, fields={p.name: p for p in policies}, updatable=updatable)


_IDENTITY = Mutability.REQUIRED | Mutability.REQUIRES_REPLACE
_REMOTE_DERIVED = Mutability.COMPUTED | Mutability.RETAIN_PRIOR_WHEN_UNKNOWN
_OPTIONAL_COMPUTED = (
    Mutability.OPTIONAL | Mutability.COMPUTED | Mutability.RETAIN_PRIOR_WHEN_UNKNOWN
)

CONTAINER_DEPLOYMENT_POLICY = _table(
    "ContainerDeployment",
    True,
    FieldPolicy("name", _IDENTITY, "durable key assigned at creation"),
    FieldPolicy("is_spot", _OPTIONAL_COMPUTED, "defaults to false on the control plane"),
    FieldPolicy("compute", Mutability.REQUIRED),
    FieldPolicy("scaling", Mutability.REQUIRED),
    FieldPolicy("registry_settings", _OPTIONAL_COMPUTED, "defaults to a public registry"),
    FieldPolicy("containers", Mutability.REQUIRED),
    FieldPolicy("endpoint_base_url", _REMOTE_DERIVED),
    FieldPolicy("created_at", _REMOTE_DERIVED),
)

JOB_DEPLOYMENT_POLICY = _table(
    "JobDeployment",
    False,
    FieldPolicy("name", _IDENTITY, "durable key assigned at creation"),
    FieldPolicy("compute", Mutability.REQUIRED),
    FieldPolicy("scaling", Mutability.REQUIRED),
    FieldPolicy("registry_settings", _OPTIONAL_COMPUTED, "defaults to a public registry"),
    FieldPolicy("containers", Mutability.REQUIRED),
    FieldPolicy("endpoint_base_url", _REMOTE_DERIVED),
    FieldPolicy("created_at", _REMOTE_DERIVED),
)

CONTAINER_SCALING_POLICY = _table(
    "ContainerScaling",
    True,
    FieldPolicy("deployment_name", _IDENTITY, "scaling belongs to one deployment"),
    FieldPolicy("min_replica_count", Mutability.REQUIRED),
    FieldPolicy("max_replica_count", Mutability.REQUIRED),
    FieldPolicy("queue_message_ttl_seconds", Mutability.REQUIRED),
    FieldPolicy("deadline_seconds", Mutability.OPTIONAL),
    FieldPolicy("concurrent_requests_per_replica", Mutability.REQUIRED),
    FieldPolicy("scale_up_policy", Mutability.REQUIRED),
    FieldPolicy("scale_down_policy", Mutability.REQUIRED),
    FieldPolicy("triggers", Mutability.REQUIRED),
)

SECRET_POLICY = _table(
    "Secret",
    False,
    FieldPolicy("name", _IDENTITY),
    FieldPolicy("value", Mutability.REQUIRED, "write-only, never returned"),
    FieldPolicy("secret_type", _REMOTE_DERIVED),
    FieldPolicy("created_at", _REMOTE_DERIVED),
)

_CREDENTIAL_FIELD = Mutability.OPTIONAL | Mutability.REQUIRES_REPLACE

REGISTRY_CREDENTIALS_POLICY = _table(
    "RegistryCredentials",
    False,
    FieldPolicy("name", _IDENTITY),
    FieldPolicy("type", _IDENTITY),
    *(
        FieldPolicy(name, _CREDENTIAL_FIELD, "write-only, never returned")
        for name in (
            "username",
            "access_token",
            "service_account_key",
            "docker_config_json",
            "access_key_id",
            "secret_access_key",
        )
    ),
    *(
        FieldPolicy(name, _CREDENTIAL_FIELD)
        for name in ("region", "ecr_repo", "scaleway_domain", "scaleway_uuid")
    ),
    FieldPolicy("created_at", _REMOTE_DERIVED),
)

DEPLOYMENT_ACTION_POLICY = _table(
    "DeploymentAction",
    False,
    FieldPolicy("deployment_name", _IDENTITY),
    FieldPolicy("action", _IDENTITY),
    FieldPolicy("id", _REMOTE_DERIVED),
)

JOB_ACTION_POLICY = _table(
    "JobAction",
    False,
    FieldPolicy("job_name", _IDENTITY),
    FieldPolicy("action", _IDENTITY, "an action runs once; run it again by replacing"),
    FieldPolicy("id", _REMOTE_DERIVED),
)

CONTAINER_ENV_VARS_POLICY = _table(
    "ContainerEnvVars",
    True,
    FieldPolicy("deployment_name", _IDENTITY),
    FieldPolicy("container_name", _IDENTITY),
    FieldPolicy("env", Mutability.REQUIRED, "replaced as a whole on update"),
    FieldPolicy("id", _REMOTE_DERIVED),
)


def resolve_unknowns(
    declared: dict[str, Any],
    prior: dict[str, Any] | None,
    policy: ResourcePolicy,
) -> dict[str, Any]:
    """Carry forward last-known values for fields the plan leaves unknown.

    A field flagged RETAIN_PRIOR_WHEN_UNKNOWN (or Computed-only) whose
    declared value is None or missing takes the prior value, so that it
    does not show up as a spurious diff.
    """
    resolved = dict(declared)
    if not prior:
        return resolved
    for name, field_policy in policy.fields.items():
        if not field_policy.retains_prior:
            continue
        if resolved.get(name) is None and prior.get(name) is not None:
            resolved[name] = prior[name]
    return resolved


def wire_fields(planned: dict[str, Any], policy: ResourcePolicy) -> dict[str, Any]:
    """Drop Computed-only fields; the control plane rejects or ignores them."""
    return {
        name: value
        for name, value in planned.items()
        if not ((p := policy.get(name)) is not None and p.is_computed_only)
    }


def plan_change(
    prior: dict[str, Any],
    declared: dict[str, Any],
    policy: ResourcePolicy,
) -> ChangePlan:
    """Decide whether a declared change is a no-op, update, replace or rejection.

    Values are compared after disabled optional objects are normalized away
    and unknowns are resolved against prior. Computed-only fields never
    count as a change.

    Precedence:
    1. Any changed REQUIRES_REPLACE field -> REPLACE
    2. Any other change on a kind without an update endpoint -> REJECT
    3. Any other change -> UPDATE
    """
    resolved = resolve_unknowns(declared, prior, policy)

    changed: list[str] = []
    replace_fields: list[str] = []
    for name, field_policy in policy.fields.items():
        if field_policy.is_computed_only:
            continue
        if normalize_disabled(resolved.get(name)) == normalize_disabled(prior.get(name)):
            continue
        changed.append(name)
        if field_policy.requires_replace:
            replace_fields.append(name)

    if replace_fields:
        action = ChangeAction.REPLACE
    elif changed and not policy.updatable:
        action = ChangeAction.REJECT
    elif changed:
        action = ChangeAction.UPDATE
    else:
        action = ChangeAction.NO_CHANGE

    if action is not ChangeAction.NO_CHANGE:
        logger.debug(
            "Planned change",
            extra={"kind": policy.kind, "action": action.value, "changed_fields": changed},
        )
    return ChangePlan(action=action, changed=tuple(changed), replace_fields=tuple(replace_fields))
