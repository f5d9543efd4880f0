"""Tests for flattening control-plane responses."""

from deploysync.flattener import (
    flatten_container,
    flatten_deployment,
    flatten_scaling,
    flatten_secret,
)
from deploysync.remote import RemoteContainer, RemoteDeployment, RemoteScaling, RemoteSecret


class TestFlattenContainer:
    """Tests for flatten_container()."""

    def test_image_object_and_bare_string(self) -> None:
        """Test that both image encodings flatten to a plain reference."""
        nested = RemoteContainer.model_validate({"image": {"image": "svc:1"}})
        bare = RemoteContainer.model_validate({"image": "svc:1"})

        assert flatten_container(nested)["image"] == "svc:1"
        assert flatten_container(bare)["image"] == "svc:1"

    def test_omitted_keys_stay_omitted(self) -> None:
        """Test that keys the response never carried are not invented."""
        container = RemoteContainer.model_validate({"image": "svc:1", "exposed_port": 80})

        flat = flatten_container(container)

        assert flat == {"image": "svc:1", "exposed_port": 80}

    def test_disabled_healthcheck_is_none(self) -> None:
        """Test that a disabled healthcheck is reported as absent, not zero-valued."""
        container = RemoteContainer.model_validate(
            {"healthcheck": {"enabled": False, "port": 0, "path": ""}}
        )

        assert flatten_container(container) == {"healthcheck": None}

    def test_enabled_healthcheck_zero_port_is_null(self) -> None:
        container = RemoteContainer.model_validate(
            {"healthcheck": {"enabled": True, "port": 0, "path": "/health"}}
        )

        assert flatten_container(container)["healthcheck"] == {
            "enabled": True,
            "port": None,
            "path": "/health",
        }

    def test_null_entrypoint_is_none(self) -> None:
        container = RemoteContainer.model_validate({"entrypoint_overrides": None})

        assert flatten_container(container) == {"entrypoint_overrides": None}

    def test_enabled_entrypoint(self) -> None:
        container = RemoteContainer.model_validate(
            {"entrypoint_overrides": {"enabled": True, "cmd": ["serve"]}}
        )

        assert flatten_container(container)["entrypoint_overrides"] == {
            "enabled": True,
            "cmd": ["serve"],
        }

    def test_volume_mount_empty_companions_are_null(self) -> None:
        """Test that zero and empty companion fields are treated as unset."""
        container = RemoteContainer.model_validate(
            {
                "volume_mounts": [
                    {
                        "type": "shared",
                        "mount_path": "/data",
                        "volume_id": "",
                        "size_in_mb": 0,
                        "secret_name": "",
                    }
                ]
            }
        )

        assert flatten_container(container)["volume_mounts"] == [
            {
                "type": "shared",
                "mount_path": "/data",
                "volume_id": None,
                "size_in_mb": None,
                "secret_name": None,
            }
        ]


class TestFlattenDeployment:
    """Tests for flatten_deployment()."""

    def test_registry_settings_renamed(self) -> None:
        deployment = RemoteDeployment.model_validate(
            {
                "name": "svc",
                "container_registry_settings": {
                    "is_private": True,
                    "credentials": {"name": "hub"},
                },
            }
        )

        flat = flatten_deployment(deployment)

        assert flat == {
            "name": "svc",
            "registry_settings": {"is_private": True, "credentials": "hub"},
        }

    def test_computed_fields_flattened(self) -> None:
        deployment = RemoteDeployment.model_validate(
            {
                "name": "svc",
                "is_spot": False,
                "endpoint_base_url": "https://svc.example.test",
                "created_at": "2026-01-01T00:00:00Z",
                "compute": {"name": "H100", "size": 2},
            }
        )

        flat = flatten_deployment(deployment)

        assert flat["endpoint_base_url"] == "https://svc.example.test"
        assert flat["compute"] == {"name": "H100", "size": 2}
        assert flat["is_spot"] is False


class TestFlattenScaling:
    """Tests for flatten_scaling()."""

    def test_triggers_renamed_and_disabled_dropped(self) -> None:
        """Test that disabled utilization triggers flatten to None."""
        scaling = RemoteScaling.model_validate(
            {
                "min_replica_count": 0,
                "deadline_seconds": 0,
                "scaling_triggers": {
                    "queue_load": {"threshold": 2.5},
                    "cpu_utilization": {"enabled": False, "threshold": 80},
                    "gpu_utilization": {"enabled": True, "threshold": 90},
                },
            }
        )

        flat = flatten_scaling(scaling)

        assert flat == {
            "min_replica_count": 0,
            "deadline_seconds": None,
            "triggers": {
                "queue_load": {"threshold": 2.5},
                "cpu_utilization": None,
                "gpu_utilization": {"enabled": True, "threshold": 90},
            },
        }


class TestFlattenSecret:
    def test_value_never_present(self) -> None:
        secret = RemoteSecret.model_validate(
            {"name": "db", "secret_type": "generic", "created_at": "2026-01-01T00:00:00Z"}
        )

        assert "value" not in flatten_secret(secret)
