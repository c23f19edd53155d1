from rollout_core.stores.interfaces import DeploymentStore
from rollout_core.stores.registry import StoreBundle, get_store_bundle

__all__ = [
    "DeploymentStore",
    "StoreBundle",
    "get_store_bundle",
]
