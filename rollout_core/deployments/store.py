from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Iterable

import fsspec

from rollout_core.deployments import lifecycle
from rollout_core.deployments.query import DeploymentQuery, apply_query
from rollout_core.deployments.status import DeviceDeploymentStatus
from rollout_core.deployments.types import Deployment
from rollout_core.deployments.views import deployment_from_record, deployment_to_record
from rollout_core.errors import ConflictError, DeploymentNotFoundError
from rollout_core.storage.paths import join_uri

logger = logging.getLogger(__name__)

_LOCKS: dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def deployments_uri(base_uri: str) -> str:
    return join_uri(base_uri, "control", "deployments.json")


def registry_lock(base_uri: str) -> threading.RLock:
    """Single-writer lock for the registry file at base_uri."""
    uri = deployments_uri(base_uri)
    with _LOCKS_GUARD:
        lock = _LOCKS.get(uri)
        if lock is None:
            lock = threading.RLock()
            _LOCKS[uri] = lock
        return lock


def load_deployments(base_uri: str) -> list[Deployment]:
    uri = deployments_uri(base_uri)
    fs, path = fsspec.core.url_to_fs(uri)
    if not fs.exists(path):
        return []
    with fs.open(path, "rb") as handle:
        payload = json.loads(handle.read().decode("utf-8"))
    items = payload.get("deployments", []) if isinstance(payload, dict) else []
    results: list[Deployment] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        results.append(deployment_from_record(item))
    return results


def save_deployments(base_uri: str, deployments: Iterable[Deployment]) -> str:
    uri = deployments_uri(base_uri)
    fs, path = fsspec.core.url_to_fs(uri)
    fs.makedirs("/".join(path.split("/")[:-1]), exist_ok=True)
    payload = {
        "updated_at": datetime.now(timezone.utc).isoformat(),
        "deployments": [deployment_to_record(item) for item in deployments],
    }
    with fs.open(path, "wb") as handle:
        handle.write(json.dumps(payload, ensure_ascii=True).encode("utf-8"))
    return uri


def register_deployment(*, base_uri: str, deployment: Deployment) -> Deployment:
    with registry_lock(base_uri):
        deployments = load_deployments(base_uri)
        if any(existing.id == deployment.id for existing in deployments):
            raise ConflictError(f"Deployment already exists: {deployment.id}")
        deployments.append(deployment)
        save_deployments(base_uri, deployments)
    return deployment


def get_deployment(base_uri: str, deployment_id: str) -> Deployment:
    for deployment in load_deployments(base_uri):
        if deployment.id == deployment_id:
            return deployment
    raise DeploymentNotFoundError(deployment_id)


def update_deployment(*, base_uri: str, deployment: Deployment) -> Deployment:
    with registry_lock(base_uri):
        deployments = load_deployments(base_uri)
        _replace(deployments, deployment)
        save_deployments(base_uri, deployments)
    return deployment


def query_deployments(base_uri: str, query: DeploymentQuery) -> list[Deployment]:
    return apply_query(query, load_deployments(base_uri))


def record_status_transition(
    *,
    base_uri: str,
    deployment_id: str,
    device_id: str,
    old_status: DeviceDeploymentStatus | str,
    new_status: DeviceDeploymentStatus | str,
) -> Deployment:
    with registry_lock(base_uri):
        deployments = load_deployments(base_uri)
        current = _find(deployments, deployment_id)
        updated = lifecycle.apply_status_transition(
            current, device_id, old_status, new_status
        )
        updated = lifecycle.refresh_status(updated)
        _replace(deployments, updated)
        save_deployments(base_uri, deployments)
    if updated.status != current.status:
        logger.info(
            "Deployment status changed",
            extra={
                "deployment_id": deployment_id,
                "device_id": device_id,
                "status": updated.status.value,
            },
        )
    return updated


def finish_deployment(
    *,
    base_uri: str,
    deployment_id: str,
    finished_at: datetime | None = None,
) -> Deployment:
    with registry_lock(base_uri):
        deployments = load_deployments(base_uri)
        current = _find(deployments, deployment_id)
        updated = lifecycle.mark_finished(current, now=finished_at)
        if updated is not current:
            _replace(deployments, updated)
            save_deployments(base_uri, deployments)
    return updated


def _find(deployments: list[Deployment], deployment_id: str) -> Deployment:
    for deployment in deployments:
        if deployment.id == deployment_id:
            return deployment
    raise DeploymentNotFoundError(deployment_id)


def _replace(deployments: list[Deployment], deployment: Deployment) -> None:
    for idx, existing in enumerate(deployments):
        if existing.id == deployment.id:
            deployments[idx] = deployment
            return
    raise DeploymentNotFoundError(deployment.id)
