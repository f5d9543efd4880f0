"""Pydantic models for control-plane responses.

Every field is optional: the control plane omits keys it does not track
and returns null for features that are switched off. The two cases mean
different things to the merger, so flattening consults ``model_fields_set``
to tell "key returned as null" apart from "key never returned".
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel


class RemoteModel(BaseModel):
    model_config = {"extra": "ignore"}

    def returned(self, field_name: str) -> bool:
        """Whether the response carried ``field_name`` at all (even as null)."""
        return field_name in self.model_fields_set


RemoteModelT = TypeVar("RemoteModelT", bound=RemoteModel)


class RemoteCompute(RemoteModel):
    name: str | None = None
    size: int | None = None


class RemoteCredentialsRef(RemoteModel):
    name: str | None = None


class RemoteRegistrySettings(RemoteModel):
    is_private: bool | None = None
    credentials: RemoteCredentialsRef | None = None


class RemoteImage(RemoteModel):
    image: str | None = None


class RemoteHealthcheck(RemoteModel):
    enabled: bool | None = None
    port: int | None = None
    path: str | None = None


class RemoteEntrypointOverride(RemoteModel):
    enabled: bool | None = None
    entrypoint: list[str] | None = None
    cmd: list[str] | None = None


class RemoteEnvVar(RemoteModel):
    type: str | None = None
    name: str | None = None
    value_or_reference_to_secret: str | None = None


class RemoteVolumeMount(RemoteModel):
    type: str | None = None
    mount_path: str | None = None
    secret_name: str | None = None
    size_in_mb: int | None = None
    volume_id: str | None = None


class RemoteContainer(RemoteModel):
    # Reads return {"image": "..."}; some endpoints echo a bare string.
    image: RemoteImage | str | None = None
    exposed_port: int | None = None
    healthcheck: RemoteHealthcheck | None = None
    entrypoint_overrides: RemoteEntrypointOverride | None = None
    env: list[RemoteEnvVar] | None = None
    volume_mounts: list[RemoteVolumeMount] | None = None

    @property
    def image_ref(self) -> str | None:
        if isinstance(self.image, RemoteImage):
            return self.image.image
        return self.image


class RemoteDeployment(RemoteModel):
    name: str | None = None
    is_spot: bool | None = None
    endpoint_base_url: str | None = None
    created_at: str | None = None
    compute: RemoteCompute | None = None
    container_registry_settings: RemoteRegistrySettings | None = None
    containers: list[RemoteContainer] | None = None


class RemoteScalingPolicy(RemoteModel):
    delay_seconds: int | None = None


class RemoteQueueLoad(RemoteModel):
    threshold: float | None = None


class RemoteUtilization(RemoteModel):
    enabled: bool | None = None
    threshold: int | None = None


class RemoteScalingTriggers(RemoteModel):
    queue_load: RemoteQueueLoad | None = None
    cpu_utilization: RemoteUtilization | None = None
    gpu_utilization: RemoteUtilization | None = None


class RemoteScaling(RemoteModel):
    min_replica_count: int | None = None
    max_replica_count: int | None = None
    queue_message_ttl_seconds: int | None = None
    deadline_seconds: int | None = None
    concurrent_requests_per_replica: int | None = None
    scale_up_policy: RemoteScalingPolicy | None = None
    scale_down_policy: RemoteScalingPolicy | None = None
    scaling_triggers: RemoteScalingTriggers | None = None


class RemoteJobScaling(RemoteModel):
    max_replica_count: int | None = None
    queue_message_ttl_seconds: int | None = None
    deadline_seconds: int | None = None


class RemoteJobDeployment(RemoteModel):
    name: str | None = None
    endpoint_base_url: str | None = None
    created_at: str | None = None
    compute: RemoteCompute | None = None
    scaling: RemoteJobScaling | None = None
    container_registry_settings: RemoteRegistrySettings | None = None
    containers: list[RemoteContainer] | None = None


class RemoteSecret(RemoteModel):
    name: str | None = None
    secret_type: str | None = None
    created_at: str | None = None


class RemoteRegistryCredentials(RemoteModel):
    name: str | None = None
    type: str | None = None
    created_at: str | None = None


def find_by_name(items: list[RemoteModelT], name: str) -> RemoteModelT | None:
    """Return the first listed item whose ``name`` matches, if any."""
    for item in items:
        if getattr(item, "name", None) == name:
            return item
    return None


def parse_list(model_class: type[RemoteModel], payload: Any) -> list[Any]:
    """Parse a list response, tolerating a null body as an empty list."""
    if not payload:
        return []
    return [model_class.model_validate(item) for item in payload]
