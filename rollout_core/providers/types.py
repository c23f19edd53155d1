from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import BinaryIO, Protocol, runtime_checkable

METHOD_GET = "GET"
METHOD_PUT = "PUT"
METHOD_DELETE = "DELETE"

PRESIGN_METHODS: tuple[str, ...] = (METHOD_GET, METHOD_PUT, METHOD_DELETE)


@dataclass(frozen=True)
class Link:
    """A time-limited request a client may perform without further auth."""

    uri: str
    expire: datetime
    method: str
    header: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectInfo:
    path: str
    size: int | None
    last_modified: datetime | None


@runtime_checkable
class ObjectStorage(Protocol):
    def health_check(self) -> None: ...

    def put_object(self, path: str, src: BinaryIO) -> None: ...

    def get_object(self, path: str) -> bytes: ...

    def delete_object(self, path: str) -> None: ...

    def stat_object(self, path: str) -> ObjectInfo: ...

    def presign(self, path: str, method: str, lease: timedelta) -> Link: ...
