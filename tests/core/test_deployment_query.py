from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from rollout_core.deployments import (
    DeploymentConstructor,
    DeploymentQuery,
    DeploymentType,
    SortDirection,
    StatusQuery,
    apply_query,
    apply_status_transition,
    create_deployment,
    mark_finished,
    matches_query,
    resolve_targets,
    validate_query,
)
from rollout_core.errors import InvalidFieldError

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _deployment(name: str, artifact: str, day: int, **kwargs):
    constructor = DeploymentConstructor(
        name=name, artifact_name=artifact, all_devices=True
    )
    deployment = create_deployment(
        constructor, now=_BASE + timedelta(days=day), **kwargs
    )
    return resolve_targets(deployment, ["d1"])


def _fleet():
    pending = _deployment("nightly", "app-v1", 0)
    running = apply_status_transition(
        _deployment("canary", "app-v2", 1), "d1", "pending", "installing"
    )
    done = apply_status_transition(
        _deployment("Canary rollback", "app-v1", 2), "d1", "pending", "success"
    )
    aborted = apply_status_transition(
        _deployment("hotfix", "kernel-5", 3), "d1", "pending", "aborted"
    )
    config = _deployment(
        "settings",
        "cfg",
        4,
        deployment_type="configuration",
        configuration=b"{}",
    )
    return [pending, running, done, aborted, config]


@pytest.mark.core
def test_search_text_matches_name_or_artifact():
    fleet = _fleet()
    matched = apply_query(DeploymentQuery(search_text="canary"), fleet)
    assert [item.name for item in matched] == ["Canary rollback", "canary"]
    matched = apply_query(DeploymentQuery(search_text="APP-V1"), fleet)
    names = [item.name for item in matched]
    assert set(names) == {"nightly", "Canary rollback"}


@pytest.mark.core
def test_status_filters_use_derived_status():
    fleet = _fleet()

    def names(status):
        matched = apply_query(DeploymentQuery(status=status), fleet)
        return {item.name for item in matched}

    assert names(StatusQuery.PENDING) == {"nightly", "settings"}
    assert names(StatusQuery.IN_PROGRESS) == {"canary"}
    assert names(StatusQuery.FINISHED) == {"Canary rollback", "hotfix"}
    assert names(StatusQuery.ABORTED) == {"hotfix"}
    assert len(names(StatusQuery.ANY)) == 5


@pytest.mark.core
def test_type_filter_defaults_to_software():
    fleet = _fleet()
    software = apply_query(DeploymentQuery(type=DeploymentType.SOFTWARE), fleet)
    assert len(software) == 4
    config = apply_query(DeploymentQuery(type=DeploymentType.CONFIGURATION), fleet)
    assert [item.name for item in config] == ["settings"]


@pytest.mark.core
def test_sort_skip_limit_and_range():
    fleet = _fleet()
    ascending = apply_query(
        DeploymentQuery(sort=SortDirection.ASCENDING, skip=1, limit=2), fleet
    )
    assert [item.name for item in ascending] == ["canary", "Canary rollback"]
    ranged = apply_query(
        DeploymentQuery(
            created_after=_BASE + timedelta(days=1),
            created_before=_BASE + timedelta(days=3),
        ),
        fleet,
    )
    assert [item.name for item in ranged] == ["hotfix", "Canary rollback", "canary"]


@pytest.mark.core
def test_explicitly_finished_matches_finished_filter():
    deployment = mark_finished(_deployment("manual", "app", 0))
    assert matches_query(DeploymentQuery(status=StatusQuery.FINISHED), deployment)
    assert not matches_query(DeploymentQuery(status=StatusQuery.ABORTED), deployment)


@pytest.mark.core
@pytest.mark.parametrize(
    "query",
    [
        DeploymentQuery(limit=-1),
        DeploymentQuery(skip=-1),
        DeploymentQuery(
            created_after=_BASE + timedelta(days=1), created_before=_BASE
        ),
    ],
)
def test_invalid_query_rejected(query):
    with pytest.raises(InvalidFieldError):
        apply_query(query, [])


@pytest.mark.core
def test_query_does_not_modify_input():
    fleet = _fleet()
    original = list(fleet)
    apply_query(DeploymentQuery(limit=1), fleet)
    assert fleet == original


@pytest.mark.core
def test_naive_time_bounds_read_as_utc():
    fleet = _fleet()
    ranged = apply_query(
        DeploymentQuery(
            created_after=datetime(2024, 1, 2),
            created_before=datetime(2024, 1, 4),
        ),
        fleet,
    )
    assert [item.name for item in ranged] == ["hotfix", "Canary rollback", "canary"]
    assert matches_query(DeploymentQuery(created_before=datetime(2024, 1, 1)), fleet[0])


@pytest.mark.core
def test_string_status_and_sort_accepted():
    fleet = _fleet()
    query = validate_query(DeploymentQuery(status="pending", sort="asc"))
    assert query.status == StatusQuery.PENDING
    assert query.sort == SortDirection.ASCENDING
    matched = apply_query(DeploymentQuery(status="finished", sort="asc"), fleet)
    assert [item.name for item in matched] == ["Canary rollback", "hotfix"]
    with pytest.raises(InvalidFieldError):
        validate_query(DeploymentQuery(status="melted"))
