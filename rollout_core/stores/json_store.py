from __future__ import annotations

from datetime import datetime

from rollout_core.deployments import store as deployment_store
from rollout_core.deployments.query import DeploymentQuery
from rollout_core.deployments.status import DeviceDeploymentStatus
from rollout_core.deployments.types import Deployment
from rollout_core.stores.interfaces import DeploymentStore


class JsonDeploymentStore(DeploymentStore):
    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri

    def save_deployment(self, deployment: Deployment) -> Deployment:
        return deployment_store.register_deployment(
            base_uri=self._base_uri, deployment=deployment
        )

    def update_deployment(self, deployment: Deployment) -> Deployment:
        return deployment_store.update_deployment(
            base_uri=self._base_uri, deployment=deployment
        )

    def load_deployment(self, deployment_id: str) -> Deployment:
        return deployment_store.get_deployment(self._base_uri, deployment_id)

    def query_deployments(self, query: DeploymentQuery) -> list[Deployment]:
        return deployment_store.query_deployments(self._base_uri, query)

    def apply_status_transition(
        self,
        *,
        deployment_id: str,
        device_id: str,
        old_status: DeviceDeploymentStatus | str,
        new_status: DeviceDeploymentStatus | str,
    ) -> Deployment:
        return deployment_store.record_status_transition(
            base_uri=self._base_uri,
            deployment_id=deployment_id,
            device_id=device_id,
            old_status=old_status,
            new_status=new_status,
        )

    def mark_finished(
        self,
        deployment_id: str,
        *,
        finished_at: datetime | None = None,
    ) -> Deployment:
        return deployment_store.finish_deployment(
            base_uri=self._base_uri,
            deployment_id=deployment_id,
            finished_at=finished_at,
        )
