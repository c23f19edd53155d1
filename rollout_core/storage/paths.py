from __future__ import annotations

from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse


def _strip_slashes(value: str) -> str:
    return value.strip("/")


def _join_parts(parts: Iterable[str]) -> str:
    return "/".join(_strip_slashes(part) for part in parts if part)


def has_uri_scheme(value: str) -> bool:
    return bool(urlparse(value).scheme)


def join_uri(base_uri: str, *parts: str) -> str:
    parsed = urlparse(base_uri)
    if parsed.scheme == "file":
        safe_parts = [_strip_slashes(part) for part in parts if part]
        return str(Path(parsed.path).joinpath(*safe_parts))
    if parsed.scheme and parsed.netloc:
        base = base_uri.rstrip("/")
        return f"{base}/{_join_parts(parts)}"
    safe_parts = [_strip_slashes(part) for part in parts if part]
    return str(Path(base_uri).joinpath(*safe_parts))


def normalize_object_path(path: str) -> str:
    """Object keys are relative, slash separated and free of '..' segments."""
    segments = [segment for segment in path.split("/") if segment not in ("", ".")]
    if not segments or ".." in segments:
        raise ValueError(f"Invalid object path: {path!r}")
    return "/".join(segments)
