from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping
from urllib.parse import quote, urlencode

from rollout_core.providers.types import Link

PARAM_EXPIRES = "x-expires"
PARAM_METHOD = "x-method"
PARAM_SIGNATURE = "x-signature"


def sign_request(secret: str, method: str, path: str, expires: int) -> str:
    message = f"{method.upper()}\n{path}\n{expires}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class HmacRequestSigner:
    base_url: str
    secret: str

    def sign(
        self,
        path: str,
        method: str,
        expire: datetime,
        header: Mapping[str, str] | None = None,
    ) -> Link:
        expires = int(expire.timestamp())
        params = {
            PARAM_EXPIRES: str(expires),
            PARAM_METHOD: method.upper(),
            PARAM_SIGNATURE: sign_request(self.secret, method, path, expires),
        }
        uri = f"{self.base_url.rstrip('/')}/{quote(path)}?{urlencode(params)}"
        return Link(
            uri=uri,
            expire=expire,
            method=method.upper(),
            header=dict(header or {}),
        )


def verify_signed_request(
    secret: str,
    *,
    method: str,
    path: str,
    params: Mapping[str, str],
    now: datetime | None = None,
) -> bool:
    signature = params.get(PARAM_SIGNATURE)
    raw_expires = params.get(PARAM_EXPIRES)
    if not signature or not raw_expires:
        return False
    if params.get(PARAM_METHOD, "").upper() != method.upper():
        return False
    try:
        expires = int(raw_expires)
    except ValueError:
        return False
    current = now or datetime.now(timezone.utc)
    if current.timestamp() > expires:
        return False
    expected = sign_request(secret, method, path, expires)
    return hmac.compare_digest(expected, signature)
