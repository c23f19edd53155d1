from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable

from rollout_core.deployments import stats as stats_rules
from rollout_core.deployments.status import (
    DeploymentStatus,
    DeploymentType,
    DeviceDeploymentStatus,
    validate_deployment_type,
    validate_device_status,
)
from rollout_core.deployments.targeting import (
    DeploymentConstructor,
    targeting_mode,
    validate_new_constructor,
)
from rollout_core.deployments.types import Deployment
from rollout_core.errors import InvalidFieldError, PermanentError

logger = logging.getLogger(__name__)


def create_deployment(
    constructor: DeploymentConstructor,
    *,
    now: datetime | None = None,
    deployment_type: DeploymentType | str | None = None,
    configuration: bytes | None = None,
    artifacts: Iterable[str] | None = None,
) -> Deployment:
    resolved_type = (
        validate_deployment_type(deployment_type) if deployment_type else None
    )
    if resolved_type == DeploymentType.CONFIGURATION and not configuration:
        raise InvalidFieldError(
            "configuration", "required for configuration deployments"
        )
    if resolved_type != DeploymentType.CONFIGURATION and configuration:
        raise InvalidFieldError(
            "configuration", "only allowed for configuration deployments"
        )
    return Deployment(
        id=str(uuid.uuid4()),
        name=constructor.name,
        artifact_name=constructor.artifact_name,
        created=now or datetime.now(timezone.utc),
        stats=stats_rules.new_stats(),
        status=DeploymentStatus.PENDING,
        artifacts=tuple(artifacts) if artifacts else (),
        device_count=0,
        type=resolved_type,
        configuration=configuration,
        devices=constructor.devices,
        all_devices=constructor.all_devices,
        group=constructor.group,
    )


def new_deployment(
    constructor: DeploymentConstructor,
    *,
    now: datetime | None = None,
    deployment_type: DeploymentType | str | None = None,
    configuration: bytes | None = None,
    artifacts: Iterable[str] | None = None,
) -> Deployment:
    validate_new_constructor(constructor)
    deployment = create_deployment(
        constructor,
        now=now,
        deployment_type=deployment_type,
        configuration=configuration,
        artifacts=artifacts,
    )
    logger.info(
        "Deployment created",
        extra={
            "deployment_id": deployment.id,
            "targeting_mode": targeting_mode(constructor),
        },
    )
    return deployment


def resolve_targets(deployment: Deployment, device_ids: Iterable[str]) -> Deployment:
    """Fix the target set once group/all-devices membership is known.

    Every resolved device starts under the pending counter.
    """
    if deployment.max_devices is not None:
        raise PermanentError(
            f"Deployment targets already resolved: {deployment.id}"
        )
    resolved: list[str] = []
    for device_id in device_ids:
        if not device_id:
            raise InvalidFieldError("device_list", "device id cannot be empty")
        if device_id not in resolved:
            resolved.append(device_id)
    counts = dict(stats_rules.new_stats())
    counts[DeviceDeploymentStatus.PENDING] = len(resolved)
    return replace(
        deployment,
        device_list=tuple(resolved),
        device_count=len(resolved),
        max_devices=len(resolved),
        stats=stats_rules.snapshot(counts),
    )


def apply_status_transition(
    deployment: Deployment,
    device_id: str,
    old_status: DeviceDeploymentStatus | str,
    new_status: DeviceDeploymentStatus | str,
) -> Deployment:
    old = validate_device_status(old_status)
    new = validate_device_status(new_status)
    result = stats_rules.apply_transition(
        deployment.stats,
        old,
        new,
        capacity=deployment.max_devices or 0,
    )
    if result.clamped:
        logger.warning(
            "Device status counter already at zero",
            extra={
                "deployment_id": deployment.id,
                "device_id": device_id,
                "old_status": old.value,
                "new_status": new.value,
            },
        )
    return replace(deployment, stats=result.stats)


def is_not_pending(deployment: Deployment) -> bool:
    return stats_rules.is_not_pending(deployment.stats)


def is_finished(deployment: Deployment) -> bool:
    return stats_rules.is_finished(
        deployment.stats,
        deployment.max_devices,
        deployment.finished,
    )


def get_status(deployment: Deployment) -> DeploymentStatus:
    return stats_rules.derive_status(
        deployment.stats,
        deployment.max_devices,
        deployment.finished,
    )


def refresh_status(deployment: Deployment) -> Deployment:
    status = get_status(deployment)
    if status == deployment.status:
        return deployment
    return replace(deployment, status=status)


def mark_finished(deployment: Deployment, *, now: datetime | None = None) -> Deployment:
    if deployment.finished is not None:
        return deployment
    return replace(
        deployment,
        finished=now or datetime.now(timezone.utc),
        status=DeploymentStatus.FINISHED,
    )


def validate_deployment(deployment: Deployment) -> None:
    """Check a stored deployment before it is handed out."""
    if not deployment.id:
        raise InvalidFieldError("id", "cannot be blank")
    try:
        uuid.UUID(deployment.id)
    except ValueError as exc:
        raise InvalidFieldError("id", "must be a valid UUID") from exc
    if deployment.created is None:
        raise InvalidFieldError("created", "cannot be blank")
    if any(not item for item in deployment.artifacts):
        raise InvalidFieldError("artifacts", "entries cannot be blank")
    if any(not item for item in deployment.device_list):
        raise InvalidFieldError("device_list", "entries cannot be blank")
