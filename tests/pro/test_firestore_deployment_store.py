from __future__ import annotations

import os
import uuid

import pytest

from rollout_core.deployments import (
    DeploymentConstructor,
    DeploymentQuery,
    DeploymentStatus,
    DeviceDeploymentStatus,
    StatusQuery,
    new_deployment,
    resolve_targets,
)
from rollout_core.errors import ConflictError, DeploymentNotFoundError
from rollout_gcp.stores.registry import get_store_bundle


def _require_firestore_emulator() -> None:
    if os.getenv("FIRESTORE_EMULATOR_HOST"):
        return
    if os.getenv("FIRESTORE_ALLOW_REAL") == "1":
        return
    pytest.skip("Set FIRESTORE_EMULATOR_HOST or FIRESTORE_ALLOW_REAL=1")


def _collection_prefix(label: str) -> str:
    if os.getenv("FIRESTORE_ALLOW_REAL") == "1":
        return os.getenv("FIRESTORE_TEST_PREFIX", "test_")
    return f"{label}_{uuid.uuid4().hex}_"


def _stores(monkeypatch, label: str):
    monkeypatch.setenv("CONTROL_PLANE_STORE", "firestore")
    project_id = os.getenv("GOOGLE_CLOUD_PROJECT") or "rollout-test"
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", project_id)
    return get_store_bundle(
        "gs://test-bucket/control",
        project_id=project_id,
        collection_prefix=_collection_prefix(label),
    )


def _deployment():
    constructor = DeploymentConstructor(
        name="r1", artifact_name="app-v2", devices=("d1", "d2")
    )
    return resolve_targets(new_deployment(constructor), ["d1", "d2"])


@pytest.mark.pro
def test_firestore_deployment_roundtrip(monkeypatch):
    _require_firestore_emulator()
    stores = _stores(monkeypatch, "test_deployments")
    deployment = stores.deployments.save_deployment(_deployment())
    with pytest.raises(ConflictError):
        stores.deployments.save_deployment(deployment)
    loaded = stores.deployments.load_deployment(deployment.id)
    assert loaded.device_list == ("d1", "d2")
    assert loaded.stats[DeviceDeploymentStatus.PENDING] == 2
    with pytest.raises(DeploymentNotFoundError):
        stores.deployments.load_deployment("missing")


@pytest.mark.pro
def test_firestore_transitions_and_query(monkeypatch):
    _require_firestore_emulator()
    stores = _stores(monkeypatch, "test_transitions")
    deployment = stores.deployments.save_deployment(_deployment())
    other = stores.deployments.save_deployment(_deployment())
    for device_id, new_status in (("d1", "success"), ("d2", "failure")):
        stores.deployments.apply_status_transition(
            deployment_id=deployment.id,
            device_id=device_id,
            old_status="pending",
            new_status=new_status,
        )
    loaded = stores.deployments.load_deployment(deployment.id)
    assert loaded.status == DeploymentStatus.FINISHED
    finished = stores.deployments.query_deployments(
        DeploymentQuery(status=StatusQuery.FINISHED)
    )
    assert [item.id for item in finished] == [deployment.id]
    marked = stores.deployments.mark_finished(other.id)
    assert marked.finished is not None
