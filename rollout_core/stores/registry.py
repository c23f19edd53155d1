from __future__ import annotations

import os
from dataclasses import dataclass

from rollout_core.stores.interfaces import DeploymentStore
from rollout_core.stores.json_store import JsonDeploymentStore


@dataclass(frozen=True)
class StoreBundle:
    deployments: DeploymentStore


def get_store_bundle(base_uri: str) -> StoreBundle:
    backend = os.getenv("CONTROL_PLANE_STORE", "json").strip().lower()
    if backend != "json":
        raise ValueError(f"Unsupported control-plane store backend: {backend}")
    return StoreBundle(deployments=JsonDeploymentStore(base_uri))
