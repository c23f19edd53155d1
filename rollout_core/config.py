import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from rollout_core.storage.object_store import FsspecObjectStorage
from rollout_core.storage.paths import has_uri_scheme
from rollout_core.storage.signing import HmacRequestSigner


@dataclass(frozen=True)
class Config:
    env: str
    log_level: str
    storage_backend: str
    storage_uri: str
    artifact_bucket: str | None
    control_plane_root: str
    control_plane_store: str
    presign_base_url: str
    presign_secret: str | None
    presign_default_ttl_seconds: int
    presign_max_ttl_seconds: int
    artifact_content_type: str
    artifact_filename_suffix: str | None

    def presign_default_lease(self) -> timedelta:
        return timedelta(seconds=self.presign_default_ttl_seconds)

    def presign_max_lease(self) -> timedelta:
        return timedelta(seconds=self.presign_max_ttl_seconds)

    @classmethod
    def from_env(cls) -> "Config":
        missing: list[str] = []

        def require(name: str) -> str:
            value = os.getenv(name)
            if value is None or value == "":
                missing.append(name)
                return ""
            return value

        storage_backend = os.getenv("STORAGE_BACKEND", "local").strip().lower()
        allowed_backends = {"local", "remote", "gcs"}
        if storage_backend not in allowed_backends:
            allowed = ", ".join(sorted(allowed_backends))
            raise ValueError(f"STORAGE_BACKEND must be one of: {allowed}")

        env = require("ENV")
        log_level = require("LOG_LEVEL")
        artifact_bucket = None
        if storage_backend == "local":
            storage_uri = require("LOCAL_STORAGE_ROOT")
        elif storage_backend == "remote":
            storage_uri = require("STORAGE_URI")
            if storage_uri and not has_uri_scheme(storage_uri):
                raise ValueError(
                    "STORAGE_URI must include a URI scheme when STORAGE_BACKEND="
                    "remote (example: s3://bucket/artifacts)"
                )
        else:
            artifact_bucket = require("ARTIFACT_BUCKET")
            storage_uri = f"gs://{artifact_bucket}" if artifact_bucket else ""

        control_plane_root = os.getenv("CONTROL_PLANE_ROOT") or storage_uri
        control_plane_store = (
            os.getenv("CONTROL_PLANE_STORE", "json").strip().lower()
        )
        presign_base_url = os.getenv(
            "PRESIGN_BASE_URL", "http://localhost:8080/artifacts"
        )
        presign_secret = os.getenv("PRESIGN_SECRET") or None
        if storage_backend != "gcs" and presign_secret is None:
            missing.append("PRESIGN_SECRET")
        presign_default_ttl_seconds = _parse_int(
            "PRESIGN_DEFAULT_TTL_SECONDS",
            os.getenv("PRESIGN_DEFAULT_TTL_SECONDS", "900"),
        )
        presign_max_ttl_seconds = _parse_int(
            "PRESIGN_MAX_TTL_SECONDS",
            os.getenv("PRESIGN_MAX_TTL_SECONDS", "86400"),
        )
        if presign_default_ttl_seconds <= 0:
            raise ValueError("PRESIGN_DEFAULT_TTL_SECONDS must be positive")
        if presign_default_ttl_seconds > presign_max_ttl_seconds:
            raise ValueError(
                "PRESIGN_DEFAULT_TTL_SECONDS must not exceed PRESIGN_MAX_TTL_SECONDS"
            )
        artifact_content_type = os.getenv(
            "ARTIFACT_CONTENT_TYPE", "application/vnd.mender-artifact"
        )
        artifact_filename_suffix = os.getenv("ARTIFACT_FILENAME_SUFFIX") or None

        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required env vars: {missing_str}")

        return cls(
            env=env,
            log_level=log_level,
            storage_backend=storage_backend,
            storage_uri=storage_uri,
            artifact_bucket=artifact_bucket,
            control_plane_root=control_plane_root,
            control_plane_store=control_plane_store,
            presign_base_url=presign_base_url,
            presign_secret=presign_secret,
            presign_default_ttl_seconds=presign_default_ttl_seconds,
            presign_max_ttl_seconds=presign_max_ttl_seconds,
            artifact_content_type=artifact_content_type,
            artifact_filename_suffix=artifact_filename_suffix,
        )


def build_object_storage(config: Config) -> FsspecObjectStorage:
    if config.storage_backend == "gcs":
        raise ValueError(
            "STORAGE_BACKEND=gcs requires rollout_gcp.storage.build_object_storage"
        )
    signer = None
    if config.presign_secret:
        signer = HmacRequestSigner(
            base_url=config.presign_base_url,
            secret=config.presign_secret,
        )
    return FsspecObjectStorage.from_base_uri(
        config.storage_uri,
        signer=signer,
        max_lease=config.presign_max_lease(),
        filename_suffix=config.artifact_filename_suffix,
    )


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.from_env()
