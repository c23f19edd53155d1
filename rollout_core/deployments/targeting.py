from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from rollout_core.errors import (
    DevicesConflictError,
    GroupTargetingConflictError,
    InvalidFieldError,
    NoDevicesError,
)

MAX_NAME_LENGTH = 4096

TARGET_DEVICES = "devices"
TARGET_ALL = "all"
TARGET_GROUP = "group"


@dataclass(frozen=True)
class DeploymentConstructor:
    name: str
    artifact_name: str
    devices: tuple[str, ...] | None = None
    all_devices: bool = False
    group: str | None = None


def validate_constructor(constructor: DeploymentConstructor) -> None:
    """Structural checks shared by every use of a constructor.

    Raises InvalidFieldError naming the first offending field.
    """
    _require_length("name", constructor.name)
    _require_length("artifact_name", constructor.artifact_name)
    for device_id in constructor.devices or ():
        if not isinstance(device_id, str) or not device_id:
            raise InvalidFieldError("devices", "device id cannot be empty")


def validate_new_constructor(constructor: DeploymentConstructor) -> None:
    """Validate a constructor used to create a deployment.

    Exactly one targeting mode must be selected: an explicit device list,
    the all_devices flag, or a group.
    """
    validate_constructor(constructor)

    has_devices = bool(constructor.devices)
    if not constructor.group:
        if not has_devices and not constructor.all_devices:
            raise NoDevicesError()
        if has_devices and constructor.all_devices:
            raise DevicesConflictError()
    elif has_devices or constructor.all_devices:
        raise GroupTargetingConflictError()


def targeting_mode(constructor: DeploymentConstructor) -> str:
    if constructor.group:
        return TARGET_GROUP
    if constructor.all_devices:
        return TARGET_ALL
    return TARGET_DEVICES


def constructor_from_dict(payload: dict[str, object]) -> DeploymentConstructor:
    return DeploymentConstructor(
        name=_coerce_str(payload.get("name")),
        artifact_name=_coerce_str(payload.get("artifact_name")),
        devices=_coerce_devices(payload.get("devices")),
        all_devices=payload.get("all_devices") is True,
        group=_coerce_str(payload.get("group")) or None,
    )


def _require_length(field: str, value: object) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidFieldError(field, "cannot be blank")
    if len(value) > MAX_NAME_LENGTH:
        raise InvalidFieldError(
            field, f"the length must be between 1 and {MAX_NAME_LENGTH}"
        )


def _coerce_str(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def _coerce_devices(value: object) -> tuple[str, ...] | None:
    if not isinstance(value, (list, tuple, set)):
        return None
    items: Iterable[object] = value
    return tuple("" if item is None else str(item) for item in items)
