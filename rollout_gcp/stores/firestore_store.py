from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

from rollout_core.deployments import lifecycle
from rollout_core.deployments.query import (
    DeploymentQuery,
    SortDirection,
    apply_query,
    validate_query,
)
from rollout_core.deployments.status import DeviceDeploymentStatus
from rollout_core.deployments.types import Deployment
from rollout_core.deployments.views import deployment_from_record, deployment_to_record
from rollout_core.errors import (
    ConflictError,
    DeploymentNotFoundError,
    RecoverableError,
    RolloutError,
)
from rollout_core.stores.interfaces import DeploymentStore

logger = logging.getLogger(__name__)


def _doc_from_deployment(deployment: Deployment) -> dict[str, object]:
    payload = deployment_to_record(deployment)
    # Native timestamps keep range queries and ordering server side.
    payload["created"] = deployment.created
    payload["finished"] = deployment.finished
    return payload


class FirestoreDeploymentStore(DeploymentStore):
    _collection_name = "deployments"

    def __init__(
        self,
        client: firestore.Client | None = None,
        *,
        project_id: str | None = None,
        collection_prefix: str | None = None,
    ) -> None:
        self._client = client or firestore.Client(project=project_id)
        if collection_prefix is None:
            collection_prefix = os.getenv("CONTROL_PLANE_COLLECTION_PREFIX", "")
        self._collection_prefix = collection_prefix.strip()

    def _collection(self) -> firestore.CollectionReference:
        prefix = self._collection_prefix
        if prefix:
            return self._client.collection(f"{prefix}{self._collection_name}")
        return self._client.collection(self._collection_name)

    def _deployment_from_doc(self, doc: firestore.DocumentSnapshot) -> Deployment:
        data = doc.to_dict() or {}
        if "id" not in data:
            data["id"] = doc.id
        return deployment_from_record(data)

    def save_deployment(self, deployment: Deployment) -> Deployment:
        ref = self._collection().document(deployment.id)
        try:
            ref.create(_doc_from_deployment(deployment))
        except AlreadyExists as exc:
            raise ConflictError(
                f"Deployment already exists: {deployment.id}"
            ) from exc
        return deployment

    def update_deployment(self, deployment: Deployment) -> Deployment:
        ref = self._collection().document(deployment.id)

        @firestore.transactional
        def _txn(transaction: firestore.Transaction) -> Deployment:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise DeploymentNotFoundError(deployment.id)
            transaction.set(ref, _doc_from_deployment(deployment))
            return deployment

        return self._run(_txn)

    def load_deployment(self, deployment_id: str) -> Deployment:
        snapshot = self._collection().document(deployment_id).get()
        if not snapshot.exists:
            raise DeploymentNotFoundError(deployment_id)
        return self._deployment_from_doc(snapshot)

    def query_deployments(self, query: DeploymentQuery) -> list[Deployment]:
        query = validate_query(query)
        direction = (
            firestore.Query.ASCENDING
            if query.sort == SortDirection.ASCENDING
            else firestore.Query.DESCENDING
        )
        ref = self._collection()
        if query.created_after is not None:
            ref = ref.where("created", ">=", query.created_after)
        if query.created_before is not None:
            ref = ref.where("created", "<=", query.created_before)
        ref = ref.order_by("created", direction=direction)
        # Text, type and derived status are matched client side: status is
        # computed from counters and older records carry no type field.
        candidates = [self._deployment_from_doc(doc) for doc in ref.stream()]
        return apply_query(query, candidates)

    def apply_status_transition(
        self,
        *,
        deployment_id: str,
        device_id: str,
        old_status: DeviceDeploymentStatus | str,
        new_status: DeviceDeploymentStatus | str,
    ) -> Deployment:
        ref = self._collection().document(deployment_id)

        @firestore.transactional
        def _txn(transaction: firestore.Transaction) -> Deployment:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise DeploymentNotFoundError(deployment_id)
            current = self._deployment_from_doc(snapshot)
            updated = lifecycle.apply_status_transition(
                current, device_id, old_status, new_status
            )
            updated = lifecycle.refresh_status(updated)
            record = deployment_to_record(updated)
            transaction.update(
                ref,
                {"stats": record["stats"], "status": record["status"]},
            )
            return updated

        updated = self._run(_txn)
        logger.debug(
            "Applied device status transition",
            extra={
                "deployment_id": deployment_id,
                "device_id": device_id,
                "status": updated.status.value,
            },
        )
        return updated

    def mark_finished(
        self,
        deployment_id: str,
        *,
        finished_at: datetime | None = None,
    ) -> Deployment:
        ref = self._collection().document(deployment_id)
        now = finished_at or datetime.now(timezone.utc)

        @firestore.transactional
        def _txn(transaction: firestore.Transaction) -> Deployment:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise DeploymentNotFoundError(deployment_id)
            current = self._deployment_from_doc(snapshot)
            updated = lifecycle.mark_finished(current, now=now)
            if updated is not current:
                transaction.update(
                    ref,
                    {"finished": updated.finished, "status": updated.status.value},
                )
            return updated

        return self._run(_txn)

    def _run(self, txn):
        try:
            return txn(self._client.transaction())
        except RolloutError:
            raise
        except Exception as exc:  # pragma: no cover - infrastructure errors
            raise RecoverableError(f"Firestore transaction failed: {exc}") from exc
