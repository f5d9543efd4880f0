"""Tests for the merge policy."""

import copy
import itertools
import logging
from typing import Any

import pytest

from deploysync.flattener import flatten_deployment
from deploysync.merger import merge, normalize_disabled, strip_none
from deploysync.models import Container
from deploysync.remote import RemoteDeployment

PRIOR: dict[str, Any] = {
    "name": "svc",
    "is_spot": False,
    "compute": {"name": "H100", "size": 1},
    "registry_settings": {"is_private": True, "credentials": "hub"},
    "containers": [
        {
            "image": "svc:1",
            "exposed_port": 8080,
            "healthcheck": {"enabled": True, "port": 8080, "path": "/health"},
            "entrypoint_overrides": {"enabled": True, "cmd": ["serve"]},
            "env": [{"type": "plain", "name": "MODE", "value_or_reference_to_secret": "prod"}],
            "volume_mounts": [
                {"type": "shared", "mount_path": "/data", "volume_id": "vol-1"},
                {"type": "secret", "mount_path": "/etc/creds", "secret_name": "db"},
            ],
        }
    ],
}


def _paths(value: Any, prefix: str = "") -> set[str]:
    """Every leaf path in a nested value."""
    if isinstance(value, dict):
        paths: set[str] = set()
        for key, item in value.items():
            paths |= _paths(item, f"{prefix}.{key}" if prefix else key)
        return paths
    if isinstance(value, list):
        paths = set()
        for i, item in enumerate(value):
            paths |= _paths(item, f"{prefix}[{i}]")
        return paths or {prefix}
    return {prefix}


class TestMergeRules:
    """Tests for the individual merge rules."""

    def test_remote_wins_when_present(self) -> None:
        result = merge({"compute": {"name": "H100", "size": 1}}, {"compute": {"size": 2}})

        assert result.value == {"compute": {"name": "H100", "size": 2}}

    def test_absent_key_retains_prior(self) -> None:
        result = merge({"is_spot": True}, {})

        assert result.value == {"is_spot": True}

    def test_remote_silent_null_retains_prior(self) -> None:
        """Test that a null for a remote-silent field keeps the prior value."""
        prior = {"volume_mounts": [{"type": "shared", "mount_path": "/d", "volume_id": "v"}]}
        remote = {"volume_mounts": [{"type": "shared", "mount_path": "/d", "volume_id": None}]}

        result = merge(prior, remote)

        assert result.value == prior

    def test_entrypoint_null_retains_prior(self) -> None:
        prior = {"entrypoint_overrides": {"enabled": True, "cmd": ["serve"]}}

        result = merge(prior, {"entrypoint_overrides": None})

        assert result.value == prior

    @pytest.mark.parametrize("key", ["healthcheck", "cpu_utilization", "gpu_utilization"])
    def test_authoritative_null_removes_field(self, key: str) -> None:
        """Test that the control plane switching a feature off is honoured."""
        result = merge({key: {"enabled": True, "threshold": 80}, "other": 1}, {key: None})

        assert result.value == {"other": 1}

    def test_remote_only_field_added_without_nulls(self) -> None:
        result = merge({}, {"healthcheck": {"enabled": True, "port": None, "path": "/h"}})

        assert result.value == {"healthcheck": {"enabled": True, "path": "/h"}}

    def test_equal_length_lists_merge_by_index(self) -> None:
        prior = {"env": [{"name": "A", "value_or_reference_to_secret": "1"}]}
        remote = {"env": [{"value_or_reference_to_secret": "2"}]}

        result = merge(prior, remote)

        assert result.value == {"env": [{"name": "A", "value_or_reference_to_secret": "2"}]}

    def test_length_mismatch_remote_wins_for_plain_lists(self) -> None:
        prior = {"env": [{"name": "A"}, {"name": "B"}]}

        result = merge(prior, {"env": [{"name": "A"}]})

        assert result.value == {"env": [{"name": "A"}]}
        assert not result.used_fallback

    def test_volume_mount_count_mismatch_keeps_prior(self) -> None:
        prior = {"volume_mounts": [{"mount_path": "/a"}, {"mount_path": "/b"}]}

        result = merge(prior, {"volume_mounts": []})

        assert result.value == prior
        assert result.fallbacks == ["volume_mounts"]

    def test_reordered_volume_mounts_keep_prior(self) -> None:
        """Test that mounts of different kinds at the same index are never cross-merged."""
        prior = {
            "volume_mounts": [
                {"type": "shared", "mount_path": "/data", "volume_id": "vol-1"},
                {"type": "scratch", "mount_path": "/tmp/s"},
            ]
        }
        remote = {
            "volume_mounts": [
                {"type": "scratch", "mount_path": "/tmp/s", "volume_id": None},
                {"type": "shared", "mount_path": "/data", "volume_id": None},
            ]
        }

        result = merge(prior, remote)

        assert result.value == prior
        assert result.fallbacks == ["volume_mounts"]
        Container.model_validate({"image": "svc:1", "exposed_port": 8080, **result.value})

    def test_reordered_env_takes_remote(self) -> None:
        prior = {
            "env": [
                {"type": "plain", "name": "A", "value_or_reference_to_secret": "1"},
                {"type": "secret", "name": "B", "value_or_reference_to_secret": "db"},
            ]
        }
        remote = {"env": list(reversed(prior["env"]))}

        result = merge(prior, remote)

        assert result.value == remote
        assert not result.used_fallback

    def test_shape_mismatch_keeps_prior(self) -> None:
        result = merge({"compute": {"name": "H100"}}, {"compute": "H100"})

        assert result.value == {"compute": {"name": "H100"}}
        assert result.conflicts == ["compute"]

    def test_disabled_prior_objects_normalized(self) -> None:
        """Test that a disabled healthcheck in prior is treated as absent."""
        result = merge({"healthcheck": {"enabled": False, "port": 80}}, {})

        assert result.value == {}

    def test_prior_is_not_mutated(self) -> None:
        prior = copy.deepcopy(PRIOR)

        merge(prior, {"containers": [{"image": "svc:2"}]})

        assert prior == PRIOR


class TestContainerCountMismatch:
    """Container lists fall back to prior wholesale when counts differ."""

    def test_two_declared_one_returned(self) -> None:
        prior = copy.deepcopy(PRIOR)
        prior["containers"].append({"image": "sidecar:1", "exposed_port": 9090})
        remote = RemoteDeployment.model_validate(
            {"name": "svc", "containers": [{"image": {"image": "svc:2"}, "exposed_port": 8080}]}
        )

        result = merge(prior, flatten_deployment(remote))

        assert result.value["containers"] == prior["containers"]
        assert len(result.value["containers"]) == 2
        assert result.fallbacks == ["containers"]

    def test_fallback_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        prior = {"containers": [{"image": "a"}, {"image": "b"}]}

        with caplog.at_level(logging.WARNING, logger="deploysync.merger"):
            merge(prior, {"containers": [{"image": "a"}]})

        assert "kept prior list" in caplog.text


class TestNoInformationLoss:
    """Merging never drops a prior field the remote response omits."""

    @pytest.mark.parametrize(
        "dropped",
        [
            combo
            for size in range(1, 4)
            for combo in itertools.combinations(
                ["is_spot", "registry_settings", "compute", "containers", "name"], size
            )
        ],
    )
    def test_subset_response_retains_prior(self, dropped: tuple[str, ...]) -> None:
        """Test with remote responses that omit top-level fields."""
        prior = copy.deepcopy(PRIOR)
        remote_payload = {
            "name": "svc",
            "is_spot": False,
            "compute": {"name": "H100", "size": 1},
            "container_registry_settings": {"is_private": True, "credentials": {"name": "hub"}},
            "containers": [
                {
                    "image": {"image": "svc:1"},
                    "exposed_port": 8080,
                    "volume_mounts": [
                        {"type": "shared", "mount_path": "/data"},
                        {"type": "secret", "mount_path": "/etc/creds", "secret_name": "db"},
                    ],
                }
            ],
        }
        wire_names = {"registry_settings": "container_registry_settings"}
        for key in dropped:
            remote_payload.pop(wire_names.get(key, key))

        flat = flatten_deployment(RemoteDeployment.model_validate(remote_payload))
        result = merge(prior, flat)

        assert _paths(prior) <= _paths(result.value)

    def test_nested_silent_fields_retained(self) -> None:
        """Test that remote-silent nested fields survive a full response."""
        prior = copy.deepcopy(PRIOR)
        remote = RemoteDeployment.model_validate(
            {
                "name": "svc",
                "containers": [
                    {
                        "image": {"image": "svc:1"},
                        "exposed_port": 8080,
                        "entrypoint_overrides": None,
                        "volume_mounts": [
                            {"type": "shared", "mount_path": "/data", "volume_id": ""},
                            {"type": "secret", "mount_path": "/etc/creds", "secret_name": "db"},
                        ],
                    }
                ],
            }
        )

        result = merge(prior, flatten_deployment(remote))

        container = result.value["containers"][0]
        assert container["volume_mounts"][0]["volume_id"] == "vol-1"
        assert container["entrypoint_overrides"] == {"enabled": True, "cmd": ["serve"]}
        assert _paths(prior) <= _paths(result.value)


class TestHelpers:
    def test_strip_none(self) -> None:
        assert strip_none({"a": None, "b": [{"c": None, "d": 1}]}) == {"b": [{"d": 1}]}

    def test_normalize_disabled(self) -> None:
        value = {
            "triggers": {
                "queue_load": {"threshold": 1.0},
                "cpu_utilization": {"enabled": False, "threshold": 80},
            },
            "containers": [{"entrypoint_overrides": {"enabled": False}, "image": "a"}],
        }

        assert normalize_disabled(value) == {
            "triggers": {"queue_load": {"threshold": 1.0}},
            "containers": [{"image": "a"}],
        }
