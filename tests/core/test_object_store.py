from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl, urlparse

import pytest

from rollout_core.errors import ObjectNotFoundError, StorageOpError
from rollout_core.providers import ObjectStorage
from rollout_core.storage import (
    FsspecObjectStorage,
    HmacRequestSigner,
    normalize_object_path,
    verify_signed_request,
)

_SECRET = "test-secret"


def _storage(tmp_path, **kwargs) -> FsspecObjectStorage:
    signer = HmacRequestSigner(base_url="http://artifacts.test/dl", secret=_SECRET)
    return FsspecObjectStorage.from_base_uri(
        tmp_path.as_posix(), signer=signer, **kwargs
    )


def _params(uri: str) -> dict[str, str]:
    return dict(parse_qsl(urlparse(uri).query))


@pytest.mark.core
def test_put_stat_get_delete(tmp_path):
    storage = _storage(tmp_path)
    assert isinstance(storage, ObjectStorage)
    storage.health_check()
    storage.put_object("artifacts/app-v2", io.BytesIO(b"payload"))
    info = storage.stat_object("artifacts/app-v2")
    assert info.size == 7
    assert info.last_modified is not None
    assert storage.get_object("artifacts/app-v2") == b"payload"
    storage.delete_object("artifacts/app-v2")
    with pytest.raises(ObjectNotFoundError):
        storage.stat_object("artifacts/app-v2")


@pytest.mark.core
def test_missing_objects_are_not_found(tmp_path):
    storage = _storage(tmp_path)
    with pytest.raises(ObjectNotFoundError):
        storage.get_object("nope")
    with pytest.raises(ObjectNotFoundError):
        storage.delete_object("nope")
    with pytest.raises(ObjectNotFoundError):
        storage.presign("nope", "GET", timedelta(minutes=5))


@pytest.mark.core
def test_presigned_get_verifies(tmp_path):
    storage = _storage(tmp_path)
    storage.put_object("artifacts/app-v2", io.BytesIO(b"payload"))
    link = storage.presign("artifacts/app-v2", "get", timedelta(minutes=15))
    assert link.method == "GET"
    assert link.uri.startswith("http://artifacts.test/dl/artifacts/app-v2?")
    assert link.expire > datetime.now(timezone.utc)
    params = _params(link.uri)
    assert verify_signed_request(
        _SECRET, method="GET", path="artifacts/app-v2", params=params
    )
    assert not verify_signed_request(
        _SECRET, method="DELETE", path="artifacts/app-v2", params=params
    )
    assert not verify_signed_request(
        _SECRET, method="GET", path="artifacts/other", params=params
    )
    assert not verify_signed_request(
        _SECRET,
        method="GET",
        path="artifacts/app-v2",
        params=params,
        now=link.expire + timedelta(seconds=5),
    )


@pytest.mark.core
def test_presigned_put_carries_required_headers(tmp_path):
    storage = _storage(tmp_path, filename_suffix=".mender")
    link = storage.presign("artifacts/app-v2", "PUT", timedelta(minutes=5))
    assert link.method == "PUT"
    assert link.header == {
        "Content-Disposition": 'attachment; filename="app-v2.mender"'
    }
    delete_link = storage.presign("artifacts/app-v2", "DELETE", timedelta(minutes=5))
    assert delete_link.header == {}


@pytest.mark.core
def test_presign_rejects_bad_requests(tmp_path):
    storage = _storage(tmp_path, max_lease=timedelta(hours=1))
    with pytest.raises(ValueError):
        storage.presign("a", "POST", timedelta(minutes=5))
    with pytest.raises(ValueError):
        storage.presign("a", "PUT", timedelta(0))
    with pytest.raises(ValueError):
        storage.presign("a", "PUT", timedelta(hours=2))
    unsigned = FsspecObjectStorage.from_base_uri(tmp_path.as_posix())
    with pytest.raises(StorageOpError):
        unsigned.presign("a", "PUT", timedelta(minutes=5))


@pytest.mark.core
def test_object_paths_are_normalized():
    assert normalize_object_path("/artifacts//app/") == "artifacts/app"
    with pytest.raises(ValueError):
        normalize_object_path("../etc/passwd")
    with pytest.raises(ValueError):
        normalize_object_path("")
