"""Projection of control-plane responses into the local shape.

Flattening is pure: no I/O and no knowledge of prior state. The output is a
plain dict holding only the keys the response actually carried, so the
merger can tell a field the control plane never returns apart from one it
returned as null.

Conventions:
- A key the response omitted is omitted from the output.
- A returned null, a disabled healthcheck or entrypoint override, and a
  disabled utilization trigger all become an explicit ``None``.
- Zero or empty scalars the control plane uses as "unset" (``size_in_mb``
  0, empty ``volume_id``/``secret_name``, healthcheck port 0) become
  ``None``.
"""

from __future__ import annotations

from typing import Any

from .remote import (
    RemoteCompute,
    RemoteContainer,
    RemoteDeployment,
    RemoteEntrypointOverride,
    RemoteHealthcheck,
    RemoteJobDeployment,
    RemoteJobScaling,
    RemoteModel,
    RemoteRegistryCredentials,
    RemoteRegistrySettings,
    RemoteScaling,
    RemoteScalingTriggers,
    RemoteSecret,
    RemoteUtilization,
    RemoteVolumeMount,
)

# Scalars the control plane reports as zero/empty when unset
_UNSET_SCALARS: tuple[Any, ...] = (0, "")


def _scalars(
    remote: RemoteModel,
    fields: tuple[str, ...],
    unset_when_empty: tuple[str, ...] = (),
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in fields:
        if not remote.returned(name):
            continue
        value = getattr(remote, name)
        if name in unset_when_empty and value in _UNSET_SCALARS:
            value = None
        out[name] = value
    return out


def _nested(
    remote: RemoteModel,
    name: str,
    flatten: Any,
    out: dict[str, Any],
    key: str = "",
) -> None:
    """Flatten one nested object field into ``out`` if it was returned."""
    if not remote.returned(name):
        return
    value = getattr(remote, name)
    out[key or name] = None if value is None else flatten(value)


def _list(remote: RemoteModel, name: str, flatten: Any, out: dict[str, Any]) -> None:
    if not remote.returned(name):
        return
    items = getattr(remote, name)
    out[name] = None if items is None else [flatten(item) for item in items]


def flatten_compute(compute: RemoteCompute) -> dict[str, Any]:
    return _scalars(compute, ("name", "size"))


def flatten_registry_settings(settings: RemoteRegistrySettings) -> dict[str, Any]:
    out = _scalars(settings, ("is_private",))
    if settings.returned("credentials"):
        creds = settings.credentials
        out["credentials"] = creds.name if creds is not None and creds.name else None
    return out


def flatten_healthcheck(healthcheck: RemoteHealthcheck) -> dict[str, Any] | None:
    if not healthcheck.enabled:
        return None
    out: dict[str, Any] = {"enabled": True}
    out.update(_scalars(healthcheck, ("port", "path"), unset_when_empty=("port", "path")))
    return out


def flatten_entrypoint(overrides: RemoteEntrypointOverride) -> dict[str, Any] | None:
    if not overrides.enabled:
        return None
    out: dict[str, Any] = {"enabled": True}
    out.update(_scalars(overrides, ("entrypoint", "cmd")))
    return out


def flatten_volume_mount(mount: RemoteVolumeMount) -> dict[str, Any]:
    return _scalars(
        mount,
        ("type", "mount_path", "secret_name", "size_in_mb", "volume_id"),
        unset_when_empty=("secret_name", "size_in_mb", "volume_id"),
    )


def flatten_container(container: RemoteContainer) -> dict[str, Any]:
    """Flatten one container.

    The image is read from either ``{"image": "..."}`` or a bare string.
    """
    out: dict[str, Any] = {}
    if container.returned("image"):
        out["image"] = container.image_ref
    out.update(_scalars(container, ("exposed_port",)))
    _nested(container, "healthcheck", flatten_healthcheck, out)
    _nested(container, "entrypoint_overrides", flatten_entrypoint, out)
    _list(
        container,
        "env",
        lambda env_var: _scalars(env_var, ("type", "name", "value_or_reference_to_secret")),
        out,
    )
    _list(container, "volume_mounts", flatten_volume_mount, out)
    return out


def flatten_deployment(deployment: RemoteDeployment) -> dict[str, Any]:
    """Flatten a container deployment response (scaling is read separately)."""
    out = _scalars(deployment, ("name", "is_spot", "endpoint_base_url", "created_at"))
    _nested(deployment, "compute", flatten_compute, out)
    _nested(
        deployment,
        "container_registry_settings",
        flatten_registry_settings,
        out,
        key="registry_settings",
    )
    _list(deployment, "containers", flatten_container, out)
    return out


def _flatten_utilization(trigger: RemoteUtilization) -> dict[str, Any] | None:
    if not trigger.enabled:
        return None
    return {"enabled": True, **_scalars(trigger, ("threshold",))}


def flatten_triggers(triggers: RemoteScalingTriggers) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _nested(triggers, "queue_load", lambda q: _scalars(q, ("threshold",)), out)
    _nested(triggers, "cpu_utilization", _flatten_utilization, out)
    _nested(triggers, "gpu_utilization", _flatten_utilization, out)
    return out


def flatten_scaling(scaling: RemoteScaling) -> dict[str, Any]:
    """Flatten a scaling response; ``scaling_triggers`` becomes ``triggers``."""
    out = _scalars(
        scaling,
        (
            "min_replica_count",
            "max_replica_count",
            "queue_message_ttl_seconds",
            "deadline_seconds",
            "concurrent_requests_per_replica",
        ),
        unset_when_empty=("deadline_seconds",),
    )
    _nested(scaling, "scale_up_policy", lambda p: _scalars(p, ("delay_seconds",)), out)
    _nested(scaling, "scale_down_policy", lambda p: _scalars(p, ("delay_seconds",)), out)
    _nested(scaling, "scaling_triggers", flatten_triggers, out, key="triggers")
    return out


def flatten_job_scaling(scaling: RemoteJobScaling) -> dict[str, Any]:
    return _scalars(
        scaling,
        ("max_replica_count", "queue_message_ttl_seconds", "deadline_seconds"),
        unset_when_empty=("deadline_seconds",),
    )


def flatten_job(job: RemoteJobDeployment) -> dict[str, Any]:
    out = _scalars(job, ("name", "endpoint_base_url", "created_at"))
    _nested(job, "compute", flatten_compute, out)
    _nested(job, "scaling", flatten_job_scaling, out)
    _nested(
        job, "container_registry_settings", flatten_registry_settings, out, key="registry_settings"
    )
    _list(job, "containers", flatten_container, out)
    return out


def flatten_secret(secret: RemoteSecret) -> dict[str, Any]:
    # The secret value is write-only and never appears in responses.
    return _scalars(secret, ("name", "secret_type", "created_at"))


def flatten_registry_credentials(credentials: RemoteRegistryCredentials) -> dict[str, Any]:
    return _scalars(credentials, ("name", "type", "created_at"))
