from rollout_core.providers.types import (
    METHOD_DELETE,
    METHOD_GET,
    METHOD_PUT,
    PRESIGN_METHODS,
    Link,
    ObjectInfo,
    ObjectStorage,
)

__all__ = [
    "METHOD_DELETE",
    "METHOD_GET",
    "METHOD_PUT",
    "PRESIGN_METHODS",
    "Link",
    "ObjectInfo",
    "ObjectStorage",
]
