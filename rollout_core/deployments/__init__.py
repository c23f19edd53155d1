from rollout_core.deployments.lifecycle import (
    apply_status_transition,
    create_deployment,
    get_status,
    is_finished,
    is_not_pending,
    mark_finished,
    new_deployment,
    refresh_status,
    resolve_targets,
    validate_deployment,
)
from rollout_core.deployments.query import (
    DeploymentQuery,
    SortDirection,
    StatusQuery,
    apply_query,
    matches_query,
    validate_query,
)
from rollout_core.deployments.status import (
    DeploymentStatus,
    DeploymentType,
    DeviceDeploymentStatus,
    validate_deployment_status,
    validate_deployment_type,
    validate_device_status,
)
from rollout_core.deployments.targeting import (
    DeploymentConstructor,
    constructor_from_dict,
    targeting_mode,
    validate_constructor,
    validate_new_constructor,
)
from rollout_core.deployments.types import Deployment
from rollout_core.deployments.views import (
    deployment_from_record,
    deployment_to_record,
    deployment_view,
    stats_view,
)

__all__ = [
    "Deployment",
    "DeploymentConstructor",
    "DeploymentQuery",
    "DeploymentStatus",
    "DeploymentType",
    "DeviceDeploymentStatus",
    "SortDirection",
    "StatusQuery",
    "apply_query",
    "apply_status_transition",
    "constructor_from_dict",
    "create_deployment",
    "deployment_from_record",
    "deployment_to_record",
    "deployment_view",
    "get_status",
    "is_finished",
    "is_not_pending",
    "mark_finished",
    "matches_query",
    "new_deployment",
    "refresh_status",
    "resolve_targets",
    "stats_view",
    "targeting_mode",
    "validate_constructor",
    "validate_deployment",
    "validate_deployment_status",
    "validate_deployment_type",
    "validate_device_status",
    "validate_new_constructor",
    "validate_query",
]
