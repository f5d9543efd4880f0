"""Pydantic models for declared configuration and tracked state.

These models provide:
1. Type-safe parsing of declared configuration (YAML or host-supplied dicts)
2. Validation at the boundary, before any remote call
3. Clean transformation to control-plane request bodies

Declared models (``*Spec``) hold what the caller asked for. State models
(``*State``) add the fields only the control plane can know.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, ClassVar, Literal, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .config import MAX_DEPLOYMENT_NAME_LENGTH, VALID_DEPLOYMENT_NAME_PATTERN
from .errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

# =============================================================================
# Compute and Scaling
# =============================================================================


class ComputeSpec(BaseModel):
    """GPU kind and count for every replica."""

    model_config = {"extra": "ignore"}

    name: Annotated[str, Field(min_length=1)]
    size: Annotated[int, Field(ge=1)]


class ScalingPolicy(BaseModel):
    """Delay before a scale-up or scale-down takes effect."""

    model_config = {"extra": "ignore"}

    delay_seconds: Annotated[int, Field(ge=0)]


class QueueLoadTrigger(BaseModel):
    """Mandatory queue-load trigger."""

    model_config = {"extra": "ignore"}

    threshold: Annotated[float, Field(gt=0)]


class UtilizationTrigger(BaseModel):
    """Optional CPU or GPU utilization trigger."""

    model_config = {"extra": "ignore"}

    enabled: bool
    threshold: Annotated[int, Field(ge=1, le=100)]


class ScalingTriggers(BaseModel):
    """Autoscaling trigger set.

    Queue load is mandatory. Utilization triggers are independently
    toggled; ``None`` means the caller did not mention the trigger, which
    is different from declaring it disabled.
    """

    model_config = {"extra": "ignore"}

    queue_load: QueueLoadTrigger
    cpu_utilization: UtilizationTrigger | None = None
    gpu_utilization: UtilizationTrigger | None = None

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {"queue_load": self.queue_load.model_dump()}
        if self.cpu_utilization is not None:
            body["cpu_utilization"] = self.cpu_utilization.model_dump()
        if self.gpu_utilization is not None:
            body["gpu_utilization"] = self.gpu_utilization.model_dump()
        return body


class ScalingSpec(BaseModel):
    """Scaling configuration for a container deployment."""

    model_config = {"extra": "ignore"}

    min_replica_count: Annotated[int, Field(ge=0)]
    max_replica_count: Annotated[int, Field(ge=1)]
    queue_message_ttl_seconds: Annotated[int, Field(ge=1)]
    deadline_seconds: Annotated[int, Field(ge=1)] | None = None
    concurrent_requests_per_replica: Annotated[int, Field(ge=1)]
    scale_up_policy: ScalingPolicy
    scale_down_policy: ScalingPolicy
    triggers: ScalingTriggers

    @model_validator(mode="after")
    def validate_replica_bounds(self) -> ScalingSpec:
        if self.min_replica_count > self.max_replica_count:
            raise ValueError(
                f"min_replica_count ({self.min_replica_count}) cannot exceed "
                f"max_replica_count ({self.max_replica_count})"
            )
        return self

    def to_wire(self) -> dict[str, Any]:
        """Convert to the control-plane scaling options format."""
        body: dict[str, Any] = {
            "min_replica_count": self.min_replica_count,
            "max_replica_count": self.max_replica_count,
            "queue_message_ttl_seconds": self.queue_message_ttl_seconds,
            "concurrent_requests_per_replica": self.concurrent_requests_per_replica,
            "scale_up_policy": self.scale_up_policy.model_dump(),
            "scale_down_policy": self.scale_down_policy.model_dump(),
            "scaling_triggers": self.triggers.to_wire(),
        }
        if self.deadline_seconds is not None:
            body["deadline_seconds"] = self.deadline_seconds
        return body


class JobScalingSpec(BaseModel):
    """Scaling configuration for a serverless job deployment."""

    model_config = {"extra": "ignore"}

    max_replica_count: Annotated[int, Field(ge=1)]
    queue_message_ttl_seconds: Annotated[int, Field(ge=1)]
    deadline_seconds: Annotated[int, Field(ge=1)] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RegistrySettings(BaseModel):
    """Container registry access for image pulls."""

    model_config = {"extra": "ignore"}

    is_private: bool = False
    credentials: str | None = None

    @model_validator(mode="after")
    def validate_credentials(self) -> RegistrySettings:
        if self.is_private and not self.credentials:
            raise ValueError("credentials is required when is_private is true")
        return self

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {"is_private": self.is_private}
        if self.credentials:
            body["credentials"] = {"name": self.credentials}
        return body


# =============================================================================
# Containers
# =============================================================================


class Healthcheck(BaseModel):
    """Container healthcheck. Disabled is equivalent to absent."""

    model_config = {"extra": "ignore"}

    enabled: bool = True
    port: Annotated[int, Field(ge=1, le=65535)] | None = None
    path: str | None = None


class EntrypointOverride(BaseModel):
    """Entrypoint and command override. Disabled is equivalent to absent."""

    model_config = {"extra": "ignore"}

    enabled: bool = True
    entrypoint: list[str] | None = None
    cmd: list[str] | None = None


class EnvVar(BaseModel):
    """Environment variable, either a literal value or a secret reference."""

    model_config = {"extra": "ignore"}

    type: Literal["plain", "secret"]
    name: Annotated[str, Field(min_length=1)]
    value_or_reference_to_secret: str


def _unique_env(v: list[EnvVar]) -> list[EnvVar]:
    seen: set[str] = set()
    for env_var in v:
        if env_var.name in seen:
            raise ValueError(f"duplicate environment variable: {env_var.name}")
        seen.add(env_var.name)
    return v


# Companion fields whose presence depends on the mount kind
_MOUNT_COMPANION_FIELDS = ("size_in_mb", "secret_name", "volume_id")


class _VolumeMountBase(BaseModel):
    model_config = {"extra": "ignore"}

    accepted_companions: ClassVar[frozenset[str]] = frozenset()

    mount_path: Annotated[str, Field(min_length=1)]

    @model_validator(mode="before")
    @classmethod
    def reject_foreign_companions(cls, data: Any) -> Any:
        if isinstance(data, dict):
            foreign = [
                name
                for name in _MOUNT_COMPANION_FIELDS
                if name not in cls.accepted_companions and data.get(name) not in (None, "")
            ]
            if foreign:
                raise ValueError(
                    f"{data.get('type')} volume mount does not accept {', '.join(foreign)}"
                )
        return data

    @field_validator("mount_path")
    @classmethod
    def validate_mount_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("mount_path must be an absolute path")
        return v


class ScratchMount(_VolumeMountBase):
    """Ephemeral disk-backed scratch space."""

    accepted_companions: ClassVar[frozenset[str]] = frozenset({"size_in_mb"})

    type: Literal["scratch"]
    size_in_mb: Annotated[int, Field(ge=1)] | None = None


class MemoryMount(_VolumeMountBase):
    """RAM-backed scratch space."""

    accepted_companions: ClassVar[frozenset[str]] = frozenset({"size_in_mb"})

    type: Literal["memory"]
    size_in_mb: Annotated[int, Field(ge=1)] | None = None


class SecretMount(_VolumeMountBase):
    """File secret mounted into the container."""

    accepted_companions: ClassVar[frozenset[str]] = frozenset({"secret_name"})

    type: Literal["secret"]
    secret_name: Annotated[str, Field(min_length=1)]


class SharedMount(_VolumeMountBase):
    """Shared filesystem volume.

    ``volume_id`` is remote-silent: the control plane accepts it but does
    not return it on reads.
    """

    accepted_companions: ClassVar[frozenset[str]] = frozenset({"volume_id"})

    type: Literal["shared"]
    volume_id: Annotated[str, Field(min_length=1)]


VolumeMount = Annotated[
    ScratchMount | MemoryMount | SecretMount | SharedMount,
    Field(discriminator="type"),
]


class Container(BaseModel):
    """A container within a deployment. Identity is its list index."""

    model_config = {"extra": "ignore"}

    image: Annotated[str, Field(min_length=1)]
    exposed_port: Annotated[int, Field(ge=1, le=65535)]
    healthcheck: Healthcheck | None = None
    entrypoint_overrides: EntrypointOverride | None = None
    env: list[EnvVar] = Field(default_factory=list)
    volume_mounts: list[VolumeMount] = Field(default_factory=list)

    @field_validator("env")
    @classmethod
    def validate_unique_env(cls, v: list[EnvVar]) -> list[EnvVar]:
        return _unique_env(v)

    def to_wire(self) -> dict[str, Any]:
        """Convert to the control-plane container format."""
        body: dict[str, Any] = {"image": self.image, "exposed_port": self.exposed_port}
        if self.healthcheck is not None:
            body["healthcheck"] = self.healthcheck.model_dump(exclude_none=True)
        if self.entrypoint_overrides is not None:
            body["entrypoint_overrides"] = self.entrypoint_overrides.model_dump(
                exclude_none=True
            )
        if self.env:
            body["env"] = [env_var.model_dump() for env_var in self.env]
        if self.volume_mounts:
            body["volume_mounts"] = [
                mount.model_dump(exclude_none=True) for mount in self.volume_mounts
            ]
        return body


def _validate_deployment_name(v: str) -> str:
    if len(v) > MAX_DEPLOYMENT_NAME_LENGTH:
        raise ValueError(f"name exceeds maximum length of {MAX_DEPLOYMENT_NAME_LENGTH}")
    if not re.match(VALID_DEPLOYMENT_NAME_PATTERN, v):
        raise ValueError(f"name must match pattern {VALID_DEPLOYMENT_NAME_PATTERN}: {v}")
    return v


# =============================================================================
# Container Deployments
# =============================================================================


class DeploymentSpec(BaseModel):
    """Declared container deployment."""

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "ContainerDeployment"

    name: str
    is_spot: bool | None = None
    compute: ComputeSpec
    scaling: ScalingSpec
    registry_settings: RegistrySettings | None = None
    containers: Annotated[list[Container], Field(min_length=1)]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_deployment_name(v)

    def to_create_request(self) -> dict[str, Any]:
        """Build the create-deployment request body.

        A registry that was never declared is sent as public.
        """
        registry = self.registry_settings or RegistrySettings()
        return {
            "name": self.name,
            "is_spot": bool(self.is_spot),
            "compute": self.compute.model_dump(),
            "scaling": self.scaling.to_wire(),
            "container_registry_settings": registry.to_wire(),
            "containers": [container.to_wire() for container in self.containers],
        }

    def to_update_request(self, scaling: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build the update-deployment request body.

        Args:
            scaling: Pre-built scaling payload (read-modify-write result).
                Defaults to the declared scaling as-is.
        """
        body: dict[str, Any] = {
            "compute": self.compute.model_dump(),
            "scaling": scaling if scaling is not None else self.scaling.to_wire(),
            "containers": [container.to_wire() for container in self.containers],
        }
        if self.is_spot is not None:
            body["is_spot"] = self.is_spot
        if self.registry_settings is not None:
            body["container_registry_settings"] = self.registry_settings.to_wire()
        return body


class DeploymentState(DeploymentSpec):
    """Tracked container deployment state."""

    endpoint_base_url: str | None = None
    created_at: str | None = None


class ContainerScalingSpec(ScalingSpec):
    """Standalone scaling configuration attached to an existing deployment."""

    kind: ClassVar[str] = "ContainerScaling"

    deployment_name: str

    @field_validator("deployment_name")
    @classmethod
    def validate_deployment_name(cls, v: str) -> str:
        return _validate_deployment_name(v)

    def scaling(self) -> ScalingSpec:
        return ScalingSpec.model_validate(self.model_dump(exclude={"deployment_name"}))


class DeploymentAction(BaseModel):
    """One-shot lifecycle action against a deployment."""

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "DeploymentAction"

    deployment_name: str
    action: Literal["pause", "resume", "restart", "purge_queue"]
    id: str | None = None

    @field_validator("deployment_name")
    @classmethod
    def validate_deployment_name(cls, v: str) -> str:
        return _validate_deployment_name(v)


class ContainerEnvVarsSpec(BaseModel):
    """Environment variables of one container, managed apart from its deployment."""

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "ContainerEnvVars"

    deployment_name: str
    container_name: Annotated[str, Field(min_length=1)]
    env: Annotated[list[EnvVar], Field(min_length=1)]
    id: str | None = None

    @field_validator("deployment_name")
    @classmethod
    def validate_deployment_name(cls, v: str) -> str:
        return _validate_deployment_name(v)

    @field_validator("env")
    @classmethod
    def validate_unique_env(cls, v: list[EnvVar]) -> list[EnvVar]:
        return _unique_env(v)

    def to_request(self) -> dict[str, Any]:
        return {
            "container_name": self.container_name,
            "env": [env_var.model_dump() for env_var in self.env],
        }


# =============================================================================
# Serverless Jobs
# =============================================================================


class JobDeploymentSpec(BaseModel):
    """Declared serverless job deployment. The control plane cannot update it."""

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "JobDeployment"

    name: str
    compute: ComputeSpec
    scaling: JobScalingSpec
    registry_settings: RegistrySettings | None = None
    containers: Annotated[list[Container], Field(min_length=1)]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_deployment_name(v)

    def to_create_request(self) -> dict[str, Any]:
        registry = self.registry_settings or RegistrySettings()
        return {
            "name": self.name,
            "compute": self.compute.model_dump(),
            "scaling": self.scaling.to_wire(),
            "container_registry_settings": registry.to_wire(),
            "containers": [container.to_wire() for container in self.containers],
        }


class JobDeploymentState(JobDeploymentSpec):
    """Tracked serverless job state."""

    endpoint_base_url: str | None = None
    created_at: str | None = None


class JobAction(BaseModel):
    """One-shot action against a serverless job."""

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "JobAction"

    job_name: str
    action: Literal["pause", "resume", "purge_queue"]
    id: str | None = None

    @field_validator("job_name")
    @classmethod
    def validate_job_name(cls, v: str) -> str:
        return _validate_deployment_name(v)


# =============================================================================
# Secrets and Registry Credentials
# =============================================================================


class SecretSpec(BaseModel):
    """Declared secret. ``value`` is write-only on the control plane."""

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "Secret"

    name: Annotated[str, Field(min_length=1)]
    value: Annotated[str, Field(min_length=1, repr=False)]

    def to_create_request(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


class SecretState(SecretSpec):
    secret_type: str | None = None
    created_at: str | None = None


class RegistryCredentialsSpec(BaseModel):
    """Declared credentials for a private container registry.

    Which fields apply depends on ``type`` (dockerhub, gcr, ghcr, ecr,
    scaleway, ...). Every field is write-only on the control plane.
    """

    model_config = {"extra": "ignore"}

    kind: ClassVar[str] = "RegistryCredentials"

    name: Annotated[str, Field(min_length=1)]
    type: Annotated[str, Field(min_length=1)]
    username: str | None = Field(default=None, repr=False)
    access_token: str | None = Field(default=None, repr=False)
    service_account_key: str | None = Field(default=None, repr=False)
    docker_config_json: str | None = Field(default=None, repr=False)
    access_key_id: str | None = Field(default=None, repr=False)
    secret_access_key: str | None = Field(default=None, repr=False)
    region: str | None = None
    ecr_repo: str | None = None
    scaleway_domain: str | None = None
    scaleway_uuid: str | None = None

    def to_create_request(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RegistryCredentialsState(RegistryCredentialsSpec):
    created_at: str | None = None


# =============================================================================
# Spec Registry
# =============================================================================

SPEC_REGISTRY: dict[str, type[BaseModel]] = {
    DeploymentSpec.kind: DeploymentSpec,
    JobDeploymentSpec.kind: JobDeploymentSpec,
    ContainerScalingSpec.kind: ContainerScalingSpec,
    DeploymentAction.kind: DeploymentAction,
    ContainerEnvVarsSpec.kind: ContainerEnvVarsSpec,
    JobAction.kind: JobAction,
    SecretSpec.kind: SecretSpec,
    RegistryCredentialsSpec.kind: RegistryCredentialsSpec,
}


def get_spec_class(kind: str) -> type[BaseModel]:
    """Get the declared model class for a resource kind.

    Raises:
        ValueError: If kind is not recognized.
    """
    spec_class = SPEC_REGISTRY.get(kind)
    if spec_class is None:
        valid_kinds = list(SPEC_REGISTRY.keys())
        raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {valid_kinds}")
    return spec_class


def format_validation_errors(error: PydanticValidationError) -> list[str]:
    """Flatten pydantic errors into ``loc: msg`` lines."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return lines


def parse_declared(model_class: type[ModelT], data: Any) -> ModelT:
    """Validate declared data, raising the package ValidationError.

    Raises:
        ValidationError: If the data does not satisfy the model.
    """
    if isinstance(data, model_class):
        data = data.model_dump()
    try:
        return model_class.model_validate(data)
    except PydanticValidationError as e:
        errors = format_validation_errors(e)
        raise ValidationError(
            f"Invalid {model_class.__name__}:\n  - " + "\n  - ".join(errors),
            errors=errors,
        ) from e
