from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import BinaryIO

import google.auth
from google.api_core.exceptions import NotFound
from google.auth import iam
from google.auth.transport.requests import Request
from google.cloud import storage
from google.oauth2 import service_account

from rollout_core.config import Config
from rollout_core.config import build_object_storage as core_build_object_storage
from rollout_core.errors import ObjectNotFoundError, RecoverableError, StorageOpError
from rollout_core.providers.types import (
    METHOD_GET,
    METHOD_PUT,
    Link,
    ObjectInfo,
    ObjectStorage,
)
from rollout_core.storage.object_store import (
    OP_DELETE_OBJECT,
    OP_GET_OBJECT,
    OP_HEALTH_CHECK,
    OP_PRESIGN,
    OP_PUT_OBJECT,
    OP_STAT_OBJECT,
    content_disposition,
    validate_presign,
)
from rollout_core.storage.paths import normalize_object_path

_SIGNER_CREDS = None

logger = logging.getLogger(__name__)


def signing_credentials():
    global _SIGNER_CREDS
    if _SIGNER_CREDS is not None:
        return _SIGNER_CREDS
    creds, _ = google.auth.default()
    scopes = [
        "https://www.googleapis.com/auth/devstorage.read_write",
        "https://www.googleapis.com/auth/iam",
    ]
    if hasattr(creds, "with_scopes"):
        creds = creds.with_scopes(scopes)
    if hasattr(creds, "sign_bytes"):
        _SIGNER_CREDS = creds
        return _SIGNER_CREDS
    request = Request()
    env_service_account = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL")
    service_account_email = env_service_account or getattr(
        creds, "service_account_email", None
    )
    if service_account_email == "default" and env_service_account:
        service_account_email = env_service_account
    if not service_account_email:
        raise RecoverableError(
            "Service account email is required to sign URLs via IAM."
        )
    signer = iam.Signer(request, creds, service_account_email)
    _SIGNER_CREDS = service_account.Credentials(
        signer=signer,
        service_account_email=service_account_email,
        token_uri="https://oauth2.googleapis.com/token",
    )
    return _SIGNER_CREDS


@dataclass(frozen=True)
class GcsObjectStorage:
    client: storage.Client
    bucket_name: str
    content_type: str | None = None
    filename_suffix: str | None = None
    max_lease: timedelta = timedelta(days=1)
    credentials: object | None = None

    def _blob(self, path: str) -> storage.Blob:
        return self.client.bucket(self.bucket_name).blob(normalize_object_path(path))

    def health_check(self) -> None:
        try:
            self.client.get_bucket(self.bucket_name)
        except Exception as exc:
            raise StorageOpError(
                OP_HEALTH_CHECK, "failed to read bucket properties", exc
            ) from exc

    def put_object(self, path: str, src: BinaryIO) -> None:
        blob = self._blob(path)
        if self.filename_suffix:
            blob.content_disposition = content_disposition(
                blob.name, self.filename_suffix
            )
        try:
            blob.upload_from_file(src, content_type=self.content_type)
        except Exception as exc:
            raise StorageOpError(
                OP_PUT_OBJECT, "failed to upload object to bucket", exc
            ) from exc

    def get_object(self, path: str) -> bytes:
        try:
            return self._blob(path).download_as_bytes()
        except NotFound as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except Exception as exc:
            raise StorageOpError(
                OP_GET_OBJECT, "failed to download object", exc
            ) from exc

    def delete_object(self, path: str) -> None:
        try:
            self._blob(path).delete()
        except NotFound as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except Exception as exc:
            raise StorageOpError(
                OP_DELETE_OBJECT, "failed to delete object", exc
            ) from exc

    def stat_object(self, path: str) -> ObjectInfo:
        try:
            blob = self.client.bucket(self.bucket_name).get_blob(
                normalize_object_path(path)
            )
        except Exception as exc:
            raise StorageOpError(
                OP_STAT_OBJECT, "failed to retrieve object properties", exc
            ) from exc
        if blob is None:
            raise ObjectNotFoundError(f"Object not found: {path}")
        return ObjectInfo(path=path, size=blob.size, last_modified=blob.updated)

    def presign(self, path: str, method: str, lease: timedelta) -> Link:
        resolved = validate_presign(method, lease, self.max_lease)
        if resolved == METHOD_GET:
            self.stat_object(path)
        blob = self._blob(path)
        header: dict[str, str] = {}
        if resolved == METHOD_PUT:
            if self.content_type:
                header["Content-Type"] = self.content_type
            if self.filename_suffix:
                header["Content-Disposition"] = content_disposition(
                    blob.name, self.filename_suffix
                )
        expire = datetime.now(timezone.utc) + lease
        try:
            uri = blob.generate_signed_url(
                version="v4",
                expiration=lease,
                method=resolved,
                headers=header or None,
                credentials=self.credentials or signing_credentials(),
            )
        except RecoverableError:
            raise
        except Exception as exc:
            raise StorageOpError(
                OP_PRESIGN, "failed to create pre-signed URL", exc
            ) from exc
        logger.debug(
            "Issued pre-signed request",
            extra={"storage_op": OP_PRESIGN, "object_path": blob.name},
        )
        return Link(uri=uri, expire=expire, method=resolved, header=header)


def build_object_storage(
    config: Config,
    *,
    client: storage.Client | None = None,
) -> ObjectStorage:
    if config.storage_backend != "gcs":
        return core_build_object_storage(config)
    if not config.artifact_bucket:
        raise ValueError("ARTIFACT_BUCKET is required for gcs storage")
    return GcsObjectStorage(
        client=client or storage.Client(),
        bucket_name=config.artifact_bucket,
        content_type=config.artifact_content_type,
        filename_suffix=config.artifact_filename_suffix,
        max_lease=config.presign_max_lease(),
    )
