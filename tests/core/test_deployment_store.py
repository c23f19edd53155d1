from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

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
from rollout_core.deployments.store import deployments_uri, load_deployments
from rollout_core.errors import ConflictError, DeploymentNotFoundError, NotFoundError
from rollout_core.stores import get_store_bundle


def _deployment(device_count: int = 2):
    constructor = DeploymentConstructor(
        name="r1", artifact_name="app-v2", all_devices=True
    )
    deployment = new_deployment(constructor)
    return resolve_targets(deployment, [f"d{idx}" for idx in range(device_count)])


@pytest.mark.core
def test_save_and_load_roundtrip(tmp_path):
    stores = get_store_bundle(tmp_path.as_posix())
    deployment = stores.deployments.save_deployment(_deployment())
    loaded = stores.deployments.load_deployment(deployment.id)
    assert loaded.id == deployment.id
    assert loaded.device_list == ("d0", "d1")
    assert loaded.stats[DeviceDeploymentStatus.PENDING] == 2
    assert deployments_uri(tmp_path.as_posix()).endswith("control/deployments.json")


@pytest.mark.core
def test_duplicate_save_conflicts(tmp_path):
    stores = get_store_bundle(tmp_path.as_posix())
    deployment = stores.deployments.save_deployment(_deployment())
    with pytest.raises(ConflictError):
        stores.deployments.save_deployment(deployment)


@pytest.mark.core
def test_missing_deployment_is_not_found(tmp_path):
    stores = get_store_bundle(tmp_path.as_posix())
    with pytest.raises(DeploymentNotFoundError):
        stores.deployments.load_deployment("missing")
    with pytest.raises(NotFoundError):
        stores.deployments.update_deployment(_deployment())
    with pytest.raises(NotFoundError):
        stores.deployments.apply_status_transition(
            deployment_id="missing",
            device_id="d1",
            old_status="pending",
            new_status="success",
        )


@pytest.mark.core
def test_transitions_update_persisted_status(tmp_path):
    stores = get_store_bundle(tmp_path.as_posix())
    deployment = stores.deployments.save_deployment(_deployment())
    updated = stores.deployments.apply_status_transition(
        deployment_id=deployment.id,
        device_id="d0",
        old_status="pending",
        new_status="installing",
    )
    assert updated.status == DeploymentStatus.IN_PROGRESS
    for device_id, old, new in (
        ("d0", "installing", "success"),
        ("d1", "pending", "failure"),
    ):
        updated = stores.deployments.apply_status_transition(
            deployment_id=deployment.id,
            device_id=device_id,
            old_status=old,
            new_status=new,
        )
    loaded = stores.deployments.load_deployment(deployment.id)
    assert loaded.status == DeploymentStatus.FINISHED
    assert loaded.stats[DeviceDeploymentStatus.SUCCESS] == 1
    assert loaded.stats[DeviceDeploymentStatus.FAILURE] == 1
    assert loaded.stats[DeviceDeploymentStatus.PENDING] == 0


@pytest.mark.core
def test_concurrent_transitions_are_serialized(tmp_path):
    base_uri = tmp_path.as_posix()
    stores = get_store_bundle(base_uri)
    deployment = stores.deployments.save_deployment(_deployment(device_count=20))

    def report(idx: int) -> None:
        stores.deployments.apply_status_transition(
            deployment_id=deployment.id,
            device_id=f"d{idx}",
            old_status="pending",
            new_status="success",
        )

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(report, range(20)))

    loaded = stores.deployments.load_deployment(deployment.id)
    assert loaded.stats[DeviceDeploymentStatus.SUCCESS] == 20
    assert loaded.stats[DeviceDeploymentStatus.PENDING] == 0
    assert loaded.status == DeploymentStatus.FINISHED


@pytest.mark.core
def test_mark_finished_is_set_once(tmp_path):
    stores = get_store_bundle(tmp_path.as_posix())
    deployment = stores.deployments.save_deployment(_deployment())
    first = stores.deployments.mark_finished(deployment.id)
    second = stores.deployments.mark_finished(deployment.id)
    assert first.finished is not None
    assert second.finished == first.finished
    assert second.status == DeploymentStatus.FINISHED


@pytest.mark.core
def test_query_through_store(tmp_path):
    base_uri = tmp_path.as_posix()
    stores = get_store_bundle(base_uri)
    first = stores.deployments.save_deployment(_deployment())
    second = stores.deployments.save_deployment(_deployment())
    stores.deployments.apply_status_transition(
        deployment_id=second.id,
        device_id="d0",
        old_status="pending",
        new_status="downloading",
    )
    pending = stores.deployments.query_deployments(
        DeploymentQuery(status=StatusQuery.PENDING)
    )
    assert [item.id for item in pending] == [first.id]
    assert len(load_deployments(base_uri)) == 2


@pytest.mark.core
def test_unknown_store_backend(monkeypatch, tmp_path):
    monkeypatch.setenv("CONTROL_PLANE_STORE", "mongo")
    with pytest.raises(ValueError):
        get_store_bundle(tmp_path.as_posix())
