from __future__ import annotations

import base64
from datetime import datetime, timezone

from rollout_core.deployments import stats as stats_rules
from rollout_core.deployments.lifecycle import get_status, validate_deployment
from rollout_core.deployments.status import (
    DeploymentStatus,
    DeploymentType,
    DeviceDeploymentStatus,
    validate_deployment_status,
    validate_deployment_type,
)
from rollout_core.deployments.types import Deployment


def deployment_view(deployment: Deployment) -> dict[str, object]:
    """External representation of a deployment.

    Targeting inputs (devices, all_devices, group), the resolved device list
    and the raw counters are left out.  Records written before deployment
    types existed have no type and read as software deployments.
    """
    payload: dict[str, object] = {
        "id": deployment.id,
        "name": deployment.name,
        "artifact_name": deployment.artifact_name,
        "created": _format_time(deployment.created),
        "status": get_status(deployment).value,
        "device_count": deployment.device_count,
        "type": effective_type(deployment).value,
    }
    if deployment.finished is not None:
        payload["finished"] = _format_time(deployment.finished)
    if deployment.artifacts:
        payload["artifacts"] = list(deployment.artifacts)
    if deployment.max_devices:
        payload["max_devices"] = deployment.max_devices
    if deployment.configuration:
        payload["configuration"] = _encode_bytes(deployment.configuration)
    return payload


def stats_view(deployment: Deployment) -> dict[str, int]:
    return {
        status.value: int(deployment.stats.get(status, 0))
        for status in DeviceDeploymentStatus
    }


def effective_type(deployment: Deployment) -> DeploymentType:
    return deployment.type or DeploymentType.SOFTWARE


def deployment_to_record(deployment: Deployment) -> dict[str, object]:
    return {
        "id": deployment.id,
        "name": deployment.name,
        "artifact_name": deployment.artifact_name,
        "created": _format_time(deployment.created),
        "finished": _format_time(deployment.finished),
        "artifacts": list(deployment.artifacts),
        "stats": stats_view(deployment),
        "status": deployment.status.value,
        "device_count": deployment.device_count,
        "max_devices": deployment.max_devices,
        "device_list": list(deployment.device_list),
        "type": deployment.type.value if deployment.type else None,
        "configuration": _encode_bytes(deployment.configuration),
        "group": deployment.group,
    }


def deployment_from_record(payload: dict[str, object]) -> Deployment:
    raw_type = payload.get("type")
    raw_status = payload.get("status") or DeploymentStatus.PENDING.value
    deployment = Deployment(
        id=_coerce_optional_str(payload.get("id")) or "",
        name=str(payload.get("name", "")),
        artifact_name=str(payload.get("artifact_name", "")),
        created=_parse_time(payload.get("created")),  # type: ignore[arg-type]
        finished=_parse_time(payload.get("finished")),
        artifacts=_coerce_str_tuple(payload.get("artifacts")),
        stats=_coerce_stats(payload.get("stats")),
        status=validate_deployment_status(raw_status),
        device_count=_coerce_int(payload.get("device_count")),
        max_devices=_coerce_optional_int(payload.get("max_devices")),
        device_list=_coerce_str_tuple(payload.get("device_list")),
        type=validate_deployment_type(raw_type) if raw_type else None,
        configuration=_decode_bytes(payload.get("configuration")),
        group=_coerce_optional_str(payload.get("group")),
    )
    validate_deployment(deployment)
    return deployment


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_time(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _encode_bytes(value: bytes | None) -> str | None:
    if not value:
        return None
    return base64.b64encode(value).decode("ascii")


def _decode_bytes(value: object) -> bytes | None:
    if not value:
        return None
    if isinstance(value, bytes):
        return value
    return base64.b64decode(str(value))


def _coerce_stats(value: object) -> stats_rules.Stats:
    if not isinstance(value, dict):
        return stats_rules.new_stats()
    counts: dict[DeviceDeploymentStatus, int] = {}
    for key, count in value.items():
        try:
            status = DeviceDeploymentStatus(str(key))
        except ValueError:
            continue
        counts[status] = _coerce_int(count)
    return stats_rules.snapshot(counts)


def _coerce_int(value: object) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _coerce_optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_str_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple("" if item is None else str(item) for item in value)


def _coerce_optional_int(value: object) -> int | None:
    if value is None:
        return None
    return _coerce_int(value)
