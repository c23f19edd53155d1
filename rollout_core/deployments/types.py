from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from rollout_core.deployments.status import (
    DeploymentStatus,
    DeploymentType,
    DeviceDeploymentStatus,
)


@dataclass(frozen=True)
class Deployment:
    id: str
    name: str
    artifact_name: str
    created: datetime
    stats: Mapping[DeviceDeploymentStatus, int]
    status: DeploymentStatus = DeploymentStatus.PENDING
    finished: datetime | None = None
    artifacts: tuple[str, ...] = ()
    device_count: int = 0
    # None until the target set is resolved.
    max_devices: int | None = None
    device_list: tuple[str, ...] = ()
    type: DeploymentType | None = None
    configuration: bytes | None = None
    # Targeting inputs; never part of the external view.
    devices: tuple[str, ...] | None = field(default=None, repr=False)
    all_devices: bool = field(default=False, repr=False)
    group: str | None = None
