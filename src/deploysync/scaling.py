"""Read-modify-write protocol for scaling trigger updates.

Queue load is the only mandatory trigger. CPU and GPU utilization triggers
are optional and toggled independently, and the control plane replaces the
whole trigger set on every scaling update. Sending only what the caller
declared would therefore switch off any utilization trigger the caller
never mentioned.

The reconciler fetches the current remote scaling configuration first and
passes it here. Every utilization trigger the declared configuration does
not mention is copied forward unchanged. A declared trigger always wins,
including one declared as disabled.
"""

from __future__ import annotations

import logging
from typing import Any

from .models import ScalingSpec
from .remote import RemoteScaling

logger = logging.getLogger(__name__)

UTILIZATION_TRIGGERS = ("cpu_utilization", "gpu_utilization")


def carried_triggers(
    declared: ScalingSpec, current: RemoteScaling | None
) -> dict[str, dict[str, Any]]:
    """Return the remote utilization triggers the declared config leaves unmentioned."""
    if current is None or current.scaling_triggers is None:
        return {}
    carried: dict[str, dict[str, Any]] = {}
    for name in UTILIZATION_TRIGGERS:
        if getattr(declared.triggers, name) is not None:
            continue
        remote_trigger = getattr(current.scaling_triggers, name)
        if remote_trigger is None:
            continue
        carried[name] = remote_trigger.model_dump(exclude_none=True)
    return carried


def fill_unmentioned_triggers(
    declared_scaling: dict[str, Any], prior_scaling: dict[str, Any] | None
) -> dict[str, Any]:
    """Local-shape counterpart of ``carried_triggers``.

    Applied before diffing so a trigger carried forward on the last update
    does not show up as drift against a declaration that never mentioned it.
    """
    if not prior_scaling:
        return declared_scaling
    prior_triggers = prior_scaling.get("triggers") or {}
    triggers = dict(declared_scaling.get("triggers") or {})
    for name in UTILIZATION_TRIGGERS:
        if triggers.get(name) is None and prior_triggers.get(name) is not None:
            triggers[name] = prior_triggers[name]
    return {**declared_scaling, "triggers": triggers}


def build_scaling_update(declared: ScalingSpec, current: RemoteScaling | None) -> dict[str, Any]:
    """Build the outgoing scaling update payload.

    Args:
        declared: Declared scaling configuration.
        current: Scaling configuration just read from the control plane.

    Returns:
        Wire-format scaling body with unmentioned triggers carried forward.
    """
    body = declared.to_wire()
    carried = carried_triggers(declared, current)
    if carried:
        body["scaling_triggers"].update(carried)
        logger.debug(
            "Carried forward utilization triggers from remote",
            extra={"triggers": sorted(carried)},
        )
    return body
