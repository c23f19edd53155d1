from __future__ import annotations

import os

from google.cloud import firestore

from rollout_core.stores import registry as core_registry
from rollout_core.stores.registry import StoreBundle
from rollout_gcp.stores.firestore_store import FirestoreDeploymentStore


def get_store_bundle(
    base_uri: str,
    *,
    client: firestore.Client | None = None,
    project_id: str | None = None,
    collection_prefix: str | None = None,
) -> StoreBundle:
    backend = os.getenv("CONTROL_PLANE_STORE", "json").strip().lower()
    if backend != "firestore":
        return core_registry.get_store_bundle(base_uri)
    firestore_client = client or firestore.Client(project=project_id)
    return StoreBundle(
        deployments=FirestoreDeploymentStore(
            firestore_client,
            collection_prefix=collection_prefix,
        ),
    )
