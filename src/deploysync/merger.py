"""Merge policy for flattened remote snapshots and prior local values.

The control plane never echoes every field it was given. After a create,
read or update, the flattened response is merged with the prior value
(the declared configuration or the last stored state) so that fields the
remote side is silent about are not lost.

MERGE RULES (applied per key, recursively):
1. Key absent from the remote snapshot -> prior value retained.
2. Remote value is None:
   - keys in NULL_IS_AUTHORITATIVE -> the field is removed (the control
     plane reports the feature as switched off);
   - any other key -> remote-silent, prior value retained.
3. Both values are dicts -> merged recursively.
4. Both values are lists:
   - equal length and every pair agrees on its ``type`` discriminator ->
     merged element by element (identity is the index);
   - otherwise the lists are misaligned: for keys in PRIOR_ON_MISALIGNMENT
     the prior list is kept wholesale and the fallback is recorded, for any
     other key the remote list wins.
5. Dict/list/scalar shape mismatch -> prior retained, recorded as conflict.
6. Otherwise the remote value wins.

The merged value never contains None.

KNOWN LIMITATION:
Containers have no stable key. When the remote container count differs
from the prior count, per-field merging is abandoned for the whole list
and the prior list is trusted. This can hide genuine drift on the remote
side; every occurrence is logged and reported in ``MergeResult.fallbacks``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# A remote null on these keys means "disabled", not "not returned"
NULL_IS_AUTHORITATIVE = frozenset({"healthcheck", "cpu_utilization", "gpu_utilization"})

# Lists whose elements are matched by position; a count or kind mismatch
# makes positional matching meaningless
PRIOR_ON_MISALIGNMENT = frozenset({"containers", "volume_mounts"})

# Objects where enabled=False is equivalent to absent
DISABLEABLE_KEYS = frozenset(
    {"healthcheck", "entrypoint_overrides", "cpu_utilization", "gpu_utilization"}
)


@dataclass
class MergeResult:
    """Outcome of a merge.

    Attributes:
        value: The reconciled local value.
        fallbacks: Paths where the prior list was kept because the remote
            list did not line up with it by position.
        conflicts: Paths where remote and prior had incompatible shapes.
    """

    value: dict[str, Any]
    fallbacks: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return bool(self.fallbacks)


def strip_none(value: Any) -> Any:
    """Recursively drop None values from dicts."""
    if isinstance(value, dict):
        return {k: strip_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_none(item) for item in value]
    return value


def normalize_disabled(value: Any) -> Any:
    """Drop disabled optional objects and None values.

    A healthcheck, entrypoint override or utilization trigger with
    ``enabled: false`` is equivalent to absent.
    """
    if isinstance(value, dict):
        normalized = {}
        for key, item in value.items():
            if item is None:
                continue
            if key in DISABLEABLE_KEYS and isinstance(item, dict) and item.get("enabled") is False:
                continue
            normalized[key] = normalize_disabled(item)
        return normalized
    if isinstance(value, list):
        return [normalize_disabled(item) for item in value]
    return value


def merge(prior: dict[str, Any] | None, remote: dict[str, Any]) -> MergeResult:
    """Merge a flattened remote snapshot into a prior local value.

    Args:
        prior: Declared configuration or last stored state (local shape).
        remote: Output of one of the ``flattener.flatten_*`` functions.

    Returns:
        MergeResult with the reconciled value and any recorded fallbacks.
    """
    result = MergeResult(value={})
    result.value = _merge_dict(normalize_disabled(prior or {}), remote, "", result)
    if result.fallbacks:
        logger.warning(
            "Remote list does not line up with prior, kept prior list",
            extra={"paths": result.fallbacks},
        )
    return result


def _merge_dict(
    prior: dict[str, Any],
    remote: dict[str, Any],
    path: str,
    result: MergeResult,
) -> dict[str, Any]:
    merged = dict(prior)
    for key, remote_value in remote.items():
        key_path = f"{path}.{key}" if path else key
        if remote_value is None:
            if key in NULL_IS_AUTHORITATIVE:
                merged.pop(key, None)
            continue
        if key not in prior:
            merged[key] = strip_none(remote_value)
            continue
        merged[key] = _merge_value(key, prior[key], remote_value, key_path, result)
    return merged


def _merge_value(key: str, prior: Any, remote: Any, path: str, result: MergeResult) -> Any:
    if remote is None:
        return prior

    if isinstance(prior, dict) and isinstance(remote, dict):
        return _merge_dict(prior, remote, path, result)

    if isinstance(prior, list) and isinstance(remote, list):
        if not _aligned(prior, remote):
            if key in PRIOR_ON_MISALIGNMENT:
                logger.debug(
                    "List misaligned",
                    extra={"path": path, "prior_count": len(prior), "remote_count": len(remote)},
                )
                result.fallbacks.append(path)
                return prior
            return strip_none(remote)
        return [
            _merge_value(key, prior_item, remote_item, f"{path}[{i}]", result)
            for i, (prior_item, remote_item) in enumerate(zip(prior, remote, strict=True))
        ]

    if isinstance(prior, (dict, list)) or isinstance(remote, (dict, list)):
        logger.warning(
            "Remote value shape does not match prior, kept prior",
            extra={"path": path},
        )
        result.conflicts.append(path)
        return prior

    return remote


def _aligned(prior: list[Any], remote: list[Any]) -> bool:
    """Same length, and no index pairs two different ``type`` variants."""
    if len(prior) != len(remote):
        return False
    for prior_item, remote_item in zip(prior, remote, strict=True):
        if not (isinstance(prior_item, dict) and isinstance(remote_item, dict)):
            continue
        prior_type = prior_item.get("type")
        remote_type = remote_item.get("type")
        if prior_type is not None and remote_type is not None and prior_type != remote_type:
            return False
    return True
