from __future__ import annotations

from enum import Enum

from rollout_core.errors import InvalidValueError


class DeviceDeploymentStatus(str, Enum):
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    REBOOTING = "rebooting"
    SUCCESS = "success"
    ALREADY_INSTALLED = "already-installed"
    FAILURE = "failure"
    ABORTED = "aborted"
    NO_ARTIFACT = "no-artifact"
    DECOMMISSIONED = "decommissioned"
    PAUSE_BEFORE_INSTALL = "pause-before-install"
    PAUSE_BEFORE_COMMIT = "pause-before-commit"
    PAUSE_BEFORE_REBOOT = "pause-before-reboot"
    PENDING = "pending"


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "inprogress"
    FINISHED = "finished"


class DeploymentType(str, Enum):
    SOFTWARE = "software"
    CONFIGURATION = "configuration"


# Counted towards the target size when deciding whether a deployment is done.
TERMINAL_STATUSES: tuple[DeviceDeploymentStatus, ...] = (
    DeviceDeploymentStatus.ALREADY_INSTALLED,
    DeviceDeploymentStatus.SUCCESS,
    DeviceDeploymentStatus.FAILURE,
    DeviceDeploymentStatus.NO_ARTIFACT,
    DeviceDeploymentStatus.DECOMMISSIONED,
    DeviceDeploymentStatus.ABORTED,
)

# Any of these above zero means the rollout has left the pending state.
ACTIVE_STATUSES: tuple[DeviceDeploymentStatus, ...] = (
    DeviceDeploymentStatus.DOWNLOADING,
    DeviceDeploymentStatus.INSTALLING,
    DeviceDeploymentStatus.REBOOTING,
    DeviceDeploymentStatus.SUCCESS,
    DeviceDeploymentStatus.ALREADY_INSTALLED,
    DeviceDeploymentStatus.FAILURE,
    DeviceDeploymentStatus.ABORTED,
    DeviceDeploymentStatus.NO_ARTIFACT,
    DeviceDeploymentStatus.PAUSE_BEFORE_INSTALL,
    DeviceDeploymentStatus.PAUSE_BEFORE_COMMIT,
    DeviceDeploymentStatus.PAUSE_BEFORE_REBOOT,
)


def _validate(enum_cls, value: object, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise InvalidValueError(
            f"{label} must be one of: {allowed} (got {value!r})"
        ) from exc


def validate_device_status(value: object) -> DeviceDeploymentStatus:
    return _validate(DeviceDeploymentStatus, value, "device deployment status")


def validate_deployment_status(value: object) -> DeploymentStatus:
    return _validate(DeploymentStatus, value, "deployment status")


def validate_deployment_type(value: object) -> DeploymentType:
    return _validate(DeploymentType, value, "deployment type")
