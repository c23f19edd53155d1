from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from rollout_core.deployments.lifecycle import get_status
from rollout_core.deployments.status import (
    DeploymentStatus,
    DeploymentType,
    DeviceDeploymentStatus,
)
from rollout_core.deployments.types import Deployment
from rollout_core.deployments.views import effective_type
from rollout_core.errors import InvalidFieldError


class StatusQuery(str, Enum):
    ANY = "any"
    PENDING = "pending"
    IN_PROGRESS = "inprogress"
    FINISHED = "finished"
    ABORTED = "aborted"


class SortDirection(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass(frozen=True)
class DeploymentQuery:
    # matched against deployment name and artifact name
    search_text: str | None = None
    type: DeploymentType | None = None
    status: StatusQuery = StatusQuery.ANY
    limit: int = 0
    skip: int = 0
    created_after: datetime | None = None
    created_before: datetime | None = None
    sort: SortDirection = SortDirection.DESCENDING


def validate_query(query: DeploymentQuery) -> DeploymentQuery:
    """Check a query and return it with boundary input normalized.

    Plain strings are accepted for status and sort; naive time bounds are
    read as UTC.
    """
    if query.limit < 0:
        raise InvalidFieldError("limit", "must not be negative")
    if query.skip < 0:
        raise InvalidFieldError("skip", "must not be negative")
    try:
        status = StatusQuery(query.status)
    except ValueError as exc:
        raise InvalidFieldError(
            "status", f"unsupported status: {query.status}"
        ) from exc
    try:
        sort = SortDirection(query.sort)
    except ValueError as exc:
        raise InvalidFieldError("sort", f"unsupported sort: {query.sort}") from exc
    created_after = _as_utc(query.created_after)
    created_before = _as_utc(query.created_before)
    if (
        created_after is not None
        and created_before is not None
        and created_after > created_before
    ):
        raise InvalidFieldError(
            "created_after", "must not be later than created_before"
        )
    return replace(
        query,
        status=status,
        sort=sort,
        created_after=created_after,
        created_before=created_before,
    )


def matches_query(query: DeploymentQuery, deployment: Deployment) -> bool:
    if query.search_text:
        needle = query.search_text.lower()
        if (
            needle not in deployment.name.lower()
            and needle not in deployment.artifact_name.lower()
        ):
            return False
    if query.type is not None and effective_type(deployment) != query.type:
        return False
    if not _matches_status(StatusQuery(query.status), deployment):
        return False
    created_after = _as_utc(query.created_after)
    if created_after is not None and deployment.created < created_after:
        return False
    created_before = _as_utc(query.created_before)
    if created_before is not None and deployment.created > created_before:
        return False
    return True


def apply_query(
    query: DeploymentQuery,
    deployments: Iterable[Deployment],
) -> list[Deployment]:
    query = validate_query(query)
    matched = [item for item in deployments if matches_query(query, item)]
    matched.sort(
        key=lambda item: item.created,
        reverse=query.sort == SortDirection.DESCENDING,
    )
    if query.skip:
        matched = matched[query.skip :]
    if query.limit > 0:
        matched = matched[: query.limit]
    return matched


def _matches_status(status: StatusQuery, deployment: Deployment) -> bool:
    if status == StatusQuery.ANY:
        return True
    current = get_status(deployment)
    if status == StatusQuery.ABORTED:
        return (
            current == DeploymentStatus.FINISHED
            and deployment.stats.get(DeviceDeploymentStatus.ABORTED, 0) > 0
        )
    return current.value == status.value


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
