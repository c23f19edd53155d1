"""Device status counters and the deployment status derived from them.

Counters are kept as plain mappings keyed by DeviceDeploymentStatus.  Every
function here treats its input as a read-only snapshot and returns fresh
objects, so the derivation rules stay independent of how a store persists
the counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from rollout_core.deployments.status import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    DeploymentStatus,
    DeviceDeploymentStatus,
)

Stats = Mapping[DeviceDeploymentStatus, int]


@dataclass(frozen=True)
class TransitionResult:
    stats: Stats
    clamped: bool


def new_stats() -> Stats:
    return MappingProxyType({status: 0 for status in DeviceDeploymentStatus})


def snapshot(values: Mapping[DeviceDeploymentStatus, int] | None) -> Stats:
    counts = {status: 0 for status in DeviceDeploymentStatus}
    for status, count in (values or {}).items():
        counts[DeviceDeploymentStatus(status)] = max(0, int(count))
    return MappingProxyType(counts)


def apply_transition(
    stats: Stats,
    old: DeviceDeploymentStatus,
    new: DeviceDeploymentStatus,
    *,
    capacity: int | None = None,
) -> TransitionResult:
    """Move one device from 'old' to 'new'.

    A decrement of an empty counter is clamped at zero.  The device is then
    taken from the pending counter instead, as a report for a device whose
    earlier reports were lost.  Only when pending is empty too and the
    counters already account for 'capacity' devices is the increment
    dropped, so the total never exceeds the target size.
    """
    if old == new:
        return TransitionResult(stats=stats, clamped=False)
    counts = dict(snapshot(stats))
    pending = DeviceDeploymentStatus.PENDING
    clamped = counts[old] <= 0
    if not clamped:
        counts[old] -= 1
        counts[new] += 1
    elif counts[pending] > 0:
        counts[pending] -= 1
        counts[new] += 1
    elif capacity is None or sum(counts.values()) < capacity:
        counts[new] += 1
    return TransitionResult(stats=MappingProxyType(counts), clamped=clamped)


def total(stats: Stats) -> int:
    return sum(stats.values())


def is_not_pending(stats: Stats) -> bool:
    return any(stats.get(status, 0) > 0 for status in ACTIVE_STATUSES)


def is_finished(
    stats: Stats,
    max_devices: int | None,
    finished: datetime | None = None,
) -> bool:
    if finished is not None:
        return True
    # Zero targets never complete through the counters; only an explicit
    # finish timestamp ends such a deployment.
    if max_devices is None or max_devices <= 0:
        return False
    done = sum(stats.get(status, 0) for status in TERMINAL_STATUSES)
    return done >= max_devices


def derive_status(
    stats: Stats,
    max_devices: int | None,
    finished: datetime | None = None,
) -> DeploymentStatus:
    if is_finished(stats, max_devices, finished):
        return DeploymentStatus.FINISHED
    if is_not_pending(stats):
        return DeploymentStatus.IN_PROGRESS
    return DeploymentStatus.PENDING
