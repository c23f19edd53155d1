from rollout_core.storage.object_store import FsspecObjectStorage
from rollout_core.storage.paths import join_uri, normalize_object_path
from rollout_core.storage.signing import (
    HmacRequestSigner,
    sign_request,
    verify_signed_request,
)

__all__ = [
    "FsspecObjectStorage",
    "HmacRequestSigner",
    "join_uri",
    "normalize_object_path",
    "sign_request",
    "verify_signed_request",
]
