from __future__ import annotations

from datetime import datetime
from typing import Protocol

from rollout_core.deployments.query import DeploymentQuery
from rollout_core.deployments.status import DeviceDeploymentStatus
from rollout_core.deployments.types import Deployment


class DeploymentStore(Protocol):
    def save_deployment(self, deployment: Deployment) -> Deployment:
        ...

    def update_deployment(self, deployment: Deployment) -> Deployment:
        ...

    def load_deployment(self, deployment_id: str) -> Deployment:
        ...

    def query_deployments(self, query: DeploymentQuery) -> list[Deployment]:
        ...

    def apply_status_transition(
        self,
        *,
        deployment_id: str,
        device_id: str,
        old_status: DeviceDeploymentStatus | str,
        new_status: DeviceDeploymentStatus | str,
    ) -> Deployment:
        ...

    def mark_finished(
        self,
        deployment_id: str,
        *,
        finished_at: datetime | None = None,
    ) -> Deployment:
        ...
