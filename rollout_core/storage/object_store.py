from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO
from urllib.parse import urlparse

import fsspec

from rollout_core.errors import ObjectNotFoundError, StorageOpError
from rollout_core.providers.types import (
    METHOD_GET,
    METHOD_PUT,
    PRESIGN_METHODS,
    Link,
    ObjectInfo,
)
from rollout_core.storage.paths import normalize_object_path
from rollout_core.storage.signing import HmacRequestSigner

OP_HEALTH_CHECK = "health_check"
OP_PUT_OBJECT = "put_object"
OP_GET_OBJECT = "get_object"
OP_DELETE_OBJECT = "delete_object"
OP_STAT_OBJECT = "stat_object"
OP_PRESIGN = "presign"

_COPY_CHUNK_BYTES = 1024 * 1024

logger = logging.getLogger(__name__)


def content_disposition(path: str, suffix: str) -> str:
    filename = path.rsplit("/", 1)[-1] + suffix
    return f'attachment; filename="{filename}"'


def validate_presign(method: str, lease: timedelta, max_lease: timedelta) -> str:
    resolved = method.upper()
    if resolved not in PRESIGN_METHODS:
        allowed = ", ".join(PRESIGN_METHODS)
        raise ValueError(f"Presign method must be one of: {allowed}")
    if lease <= timedelta(0):
        raise ValueError("Presign lease must be positive")
    if lease > max_lease:
        raise ValueError(
            f"Presign lease exceeds limit ({lease} > {max_lease})"
        )
    return resolved


@dataclass(frozen=True)
class FsspecObjectStorage:
    base_uri: str
    fs: fsspec.AbstractFileSystem
    base_path: str
    is_remote: bool
    signer: HmacRequestSigner | None = None
    max_lease: timedelta = timedelta(days=1)
    filename_suffix: str | None = None

    @classmethod
    def from_base_uri(
        cls,
        base_uri: str,
        *,
        signer: HmacRequestSigner | None = None,
        max_lease: timedelta = timedelta(days=1),
        filename_suffix: str | None = None,
    ) -> "FsspecObjectStorage":
        options = {
            "signer": signer,
            "max_lease": max_lease,
            "filename_suffix": filename_suffix,
        }
        parsed = urlparse(base_uri)
        if parsed.scheme == "file":
            fs = fsspec.filesystem("file")
            return cls(
                base_uri=base_uri,
                fs=fs,
                base_path=parsed.path,
                is_remote=False,
                **options,
            )
        if parsed.scheme and parsed.netloc:
            fs, path = fsspec.core.url_to_fs(base_uri)
            return cls(
                base_uri=base_uri, fs=fs, base_path=path, is_remote=True, **options
            )
        fs = fsspec.filesystem("file")
        return cls(
            base_uri=base_uri, fs=fs, base_path=base_uri, is_remote=False, **options
        )

    def join(self, *parts: str) -> str:
        safe_parts = [part.strip("/") for part in parts if part]
        if self.is_remote:
            return "/".join([self.base_path.rstrip("/"), *safe_parts])
        return str(Path(self.base_path).joinpath(*safe_parts))

    def health_check(self) -> None:
        try:
            if not self.is_remote:
                self.fs.makedirs(self.base_path, exist_ok=True)
            self.fs.ls(self.base_path)
        except Exception as exc:
            raise StorageOpError(
                OP_HEALTH_CHECK, "storage root is not reachable", exc
            ) from exc

    def put_object(self, path: str, src: BinaryIO) -> None:
        full_path = self._object_path(path)
        try:
            if not self.is_remote:
                parent = "/".join(full_path.split("/")[:-1])
                self.fs.makedirs(parent, exist_ok=True)
            with self.fs.open(full_path, "wb") as handle:
                while True:
                    chunk = src.read(_COPY_CHUNK_BYTES)
                    if not chunk:
                        break
                    handle.write(chunk)
        except Exception as exc:
            raise StorageOpError(
                OP_PUT_OBJECT, "failed to upload object", exc
            ) from exc

    def get_object(self, path: str) -> bytes:
        full_path = self._object_path(path)
        try:
            with self.fs.open(full_path, "rb") as handle:
                return handle.read()
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except Exception as exc:
            raise StorageOpError(
                OP_GET_OBJECT, "failed to read object", exc
            ) from exc

    def delete_object(self, path: str) -> None:
        full_path = self._object_path(path)
        try:
            self.fs.rm(full_path)
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except Exception as exc:
            raise StorageOpError(
                OP_DELETE_OBJECT, "failed to delete object", exc
            ) from exc

    def stat_object(self, path: str) -> ObjectInfo:
        full_path = self._object_path(path)
        try:
            info = self.fs.info(full_path)
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except Exception as exc:
            raise StorageOpError(
                OP_STAT_OBJECT, "failed to retrieve object properties", exc
            ) from exc
        if info.get("type") == "directory":
            raise ObjectNotFoundError(f"Object not found: {path}")
        size = info.get("size")
        return ObjectInfo(
            path=path,
            size=int(size) if size is not None else None,
            last_modified=self._modified(full_path),
        )

    def presign(self, path: str, method: str, lease: timedelta) -> Link:
        resolved = validate_presign(method, lease, self.max_lease)
        key = normalize_object_path(path)
        if self.signer is None:
            raise StorageOpError(OP_PRESIGN, "no request signer configured")
        if resolved == METHOD_GET:
            # Download links are only issued for objects that exist.
            self.stat_object(key)
        header: dict[str, str] = {}
        if resolved == METHOD_PUT and self.filename_suffix:
            header["Content-Disposition"] = content_disposition(
                key, self.filename_suffix
            )
        expire = datetime.now(timezone.utc) + lease
        link = self.signer.sign(key, resolved, expire, header)
        logger.debug(
            "Issued pre-signed request",
            extra={"storage_op": OP_PRESIGN, "object_path": key},
        )
        return link

    def _object_path(self, path: str) -> str:
        return self.join(normalize_object_path(path))

    def _modified(self, full_path: str) -> datetime | None:
        try:
            modified = self.fs.modified(full_path)
        except (NotImplementedError, FileNotFoundError):
            return None
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        return modified
