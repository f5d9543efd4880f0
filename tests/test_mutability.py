"""Tests for per-field mutability classification."""

from typing import Any

import pytest

from deploysync.mutability import (
    CONTAINER_DEPLOYMENT_POLICY,
    CONTAINER_ENV_VARS_POLICY,
    JOB_ACTION_POLICY,
    JOB_DEPLOYMENT_POLICY,
    REGISTRY_CREDENTIALS_POLICY,
    SECRET_POLICY,
    ChangeAction,
    FieldPolicy,
    Mutability,
    plan_change,
    resolve_unknowns,
    wire_fields,
)

PRIOR: dict[str, Any] = {
    "name": "svc",
    "is_spot": False,
    "compute": {"name": "H100", "size": 1},
    "registry_settings": {"is_private": False},
    "containers": [{"image": "svc:1", "exposed_port": 8080}],
    "endpoint_base_url": "https://containers.example.test/svc",
    "created_at": "2026-01-01T00:00:00Z",
}


def _declared(**overrides: Any) -> dict[str, Any]:
    declared = {
        "name": "svc",
        "compute": {"name": "H100", "size": 1},
        "containers": [{"image": "svc:1", "exposed_port": 8080}],
    }
    declared.update(overrides)
    return declared


class TestFieldPolicy:
    """Tests for flag composition."""

    def test_computed_only(self) -> None:
        policy = FieldPolicy("created_at", Mutability.COMPUTED)

        assert policy.is_computed_only
        assert policy.retains_prior

    def test_optional_computed_is_settable(self) -> None:
        flags = Mutability.OPTIONAL | Mutability.COMPUTED | Mutability.RETAIN_PRIOR_WHEN_UNKNOWN
        policy = FieldPolicy("is_spot", flags)

        assert not policy.is_computed_only
        assert policy.retains_prior
        assert not policy.requires_replace

    def test_identity_requires_replace(self) -> None:
        assert CONTAINER_DEPLOYMENT_POLICY.fields["name"].requires_replace

    def test_env_vars_update_in_place(self) -> None:
        plan = plan_change(
            {"deployment_name": "svc", "container_name": "main", "env": []},
            {
                "deployment_name": "svc",
                "container_name": "main",
                "env": [{"type": "plain", "name": "MODE", "value_or_reference_to_secret": "prod"}],
            },
            CONTAINER_ENV_VARS_POLICY,
        )

        assert plan.action is ChangeAction.UPDATE
        assert plan.changed == ("env",)

    def test_env_vars_container_change_requires_replace(self) -> None:
        prior = {"deployment_name": "svc", "container_name": "main", "env": []}

        plan = plan_change(prior, {**prior, "container_name": "sidecar"}, CONTAINER_ENV_VARS_POLICY)

        assert plan.action is ChangeAction.REPLACE
        assert plan.replace_fields == ("container_name",)

    def test_job_action_is_replace_only(self) -> None:
        assert not JOB_ACTION_POLICY.updatable
        assert JOB_ACTION_POLICY.fields["action"].requires_replace
        assert JOB_ACTION_POLICY.fields["id"].is_computed_only

    def test_every_credential_field_requires_replace(self) -> None:
        settable = [
            p for p in REGISTRY_CREDENTIALS_POLICY.fields.values() if not p.is_computed_only
        ]

        assert settable
        assert all(p.requires_replace for p in settable)


class TestPlanChange:
    """Tests for plan_change()."""

    def test_no_change(self) -> None:
        plan = plan_change(PRIOR, _declared(), CONTAINER_DEPLOYMENT_POLICY)

        assert plan.action is ChangeAction.NO_CHANGE
        assert plan.changed == ()

    def test_computed_fields_never_count(self) -> None:
        """Test that remote-derived fields differing from prior is not a change."""
        declared = _declared(endpoint_base_url="https://elsewhere.example.test")

        plan = plan_change(PRIOR, declared, CONTAINER_DEPLOYMENT_POLICY)

        assert plan.action is ChangeAction.NO_CHANGE

    def test_compute_change_updates(self) -> None:
        declared = _declared(compute={"name": "H100", "size": 2})

        plan = plan_change(PRIOR, declared, CONTAINER_DEPLOYMENT_POLICY)

        assert plan.action is ChangeAction.UPDATE
        assert plan.changed == ("compute",)

    def test_name_change_replaces(self) -> None:
        """Test that an identity change wins over an ordinary update."""
        declared = _declared(name="svc-2", compute={"name": "H100", "size": 2})

        plan = plan_change(PRIOR, declared, CONTAINER_DEPLOYMENT_POLICY)

        assert plan.action is ChangeAction.REPLACE
        assert plan.replace_fields == ("name",)
        assert set(plan.changed) == {"name", "compute"}

    def test_change_on_non_updatable_kind_rejected(self) -> None:
        declared = _declared(compute={"name": "A100", "size": 1})

        plan = plan_change(PRIOR, declared, JOB_DEPLOYMENT_POLICY)

        assert plan.action is ChangeAction.REJECT

    def test_secret_value_change_rejected(self) -> None:
        prior = {"name": "db", "value": "old", "created_at": "2026-01-01T00:00:00Z"}

        plan = plan_change(prior, {"name": "db", "value": "new"}, SECRET_POLICY)

        assert plan.action is ChangeAction.REJECT
        assert plan.changed == ("value",)

    def test_credential_change_replaces(self) -> None:
        prior = {"name": "hub", "type": "dockerhub", "username": "a", "access_token": "t"}
        declared = {**prior, "username": "b"}

        plan = plan_change(prior, declared, REGISTRY_CREDENTIALS_POLICY)

        assert plan.action is ChangeAction.REPLACE
        assert plan.replace_fields == ("username",)

    def test_disabled_equals_absent(self) -> None:
        """Test that declaring a disabled healthcheck is not a change from none."""
        declared = _declared(
            containers=[
                {
                    "image": "svc:1",
                    "exposed_port": 8080,
                    "healthcheck": {"enabled": False, "port": 8080},
                }
            ]
        )

        plan = plan_change(PRIOR, declared, CONTAINER_DEPLOYMENT_POLICY)

        assert plan.action is ChangeAction.NO_CHANGE


class TestHelpers:
    """Tests for resolve_unknowns() and wire_fields()."""

    def test_resolve_unknowns_fills_retained_fields(self) -> None:
        resolved = resolve_unknowns(_declared(is_spot=None), PRIOR, CONTAINER_DEPLOYMENT_POLICY)

        assert resolved["is_spot"] is False
        assert resolved["registry_settings"] == {"is_private": False}
        assert resolved["created_at"] == PRIOR["created_at"]

    def test_resolve_unknowns_keeps_declared_values(self) -> None:
        resolved = resolve_unknowns(_declared(is_spot=True), PRIOR, CONTAINER_DEPLOYMENT_POLICY)

        assert resolved["is_spot"] is True

    def test_resolve_unknowns_without_prior(self) -> None:
        declared = _declared()

        assert resolve_unknowns(declared, None, CONTAINER_DEPLOYMENT_POLICY) == declared

    def test_required_fields_are_never_filled(self) -> None:
        declared = _declared()
        del declared["compute"]

        resolved = resolve_unknowns(declared, PRIOR, CONTAINER_DEPLOYMENT_POLICY)

        assert "compute" not in resolved

    @pytest.mark.parametrize("field", ["endpoint_base_url", "created_at"])
    def test_wire_fields_drop_computed_only(self, field: str) -> None:
        planned = {**_declared(), field: PRIOR[field]}

        body = wire_fields(planned, CONTAINER_DEPLOYMENT_POLICY)

        assert field not in body
        assert body["name"] == "svc"

    def test_wire_fields_keep_optional_computed(self) -> None:
        body = wire_fields(_declared(is_spot=True), CONTAINER_DEPLOYMENT_POLICY)

        assert body["is_spot"] is True
