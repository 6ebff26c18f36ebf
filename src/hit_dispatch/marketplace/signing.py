"""Request signing for the marketplace and its notification queue.

Two signature schemes are in use:

* Operation signatures (requester API): HMAC-SHA1 over
  ``service + operation + timestamp``.
* Query signatures, version 2 (queue API): HMAC-SHA256 over the HTTP method,
  host, path and the sorted, percent-encoded parameter string.

In both cases ``Signature`` is set last, after every other transmitted field,
so the signed values are exactly the ones that go on the wire.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Callable, Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

from hit_dispatch.marketplace.models import Credentials

SIGNATURE_PARAM = "Signature"
QUERY_SIGNATURE_VERSION = "2"
QUERY_SIGNATURE_METHOD = "HmacSHA256"
_UNRESERVED = "-_.~"


def format_timestamp(moment: datetime) -> str:
    """Render an RFC 3339 UTC timestamp with second precision."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def sign(secret_key: str, service: str, operation: str, timestamp: str) -> str:
    payload = f"{service}{operation}{timestamp}"
    return _hmac_b64(secret_key, payload, hashlib.sha1)


def percent_encode(value: str) -> str:
    return quote(value, safe=_UNRESERVED)


def canonical_query(params: Mapping[str, str]) -> str:
    """Encoded ``key=value`` pairs sorted by encoded key, ``Signature`` excluded."""

    pairs = [
        (percent_encode(key), percent_encode(value))
        for key, value in params.items()
        if key != SIGNATURE_PARAM
    ]
    pairs.sort(key=lambda pair: pair[0])
    return "&".join(f"{key}={value}" for key, value in pairs)


def sign_v2(
    secret_key: str,
    method: str,
    host: str,
    path: str,
    params: Mapping[str, str],
) -> str:
    payload = f"{method.upper()}\n{host.lower()}\n{path or '/'}\n{canonical_query(params)}"
    return _hmac_b64(secret_key, payload, hashlib.sha256)


class RequestSigner:
    """Adds authentication fields to outbound parameter maps in place."""

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials

    @property
    def access_key(self) -> str:
        return self._credentials.access_key

    def sign_operation(
        self,
        params: MutableMapping[str, str],
        *,
        service: str,
        operation: str,
        version: str,
        timestamp: str,
    ) -> None:
        params["AWSAccessKeyId"] = self._credentials.access_key
        params["Version"] = version
        params["Operation"] = operation
        params["Timestamp"] = timestamp
        params[SIGNATURE_PARAM] = sign(
            self._credentials.secret_key,
            service,
            operation,
            timestamp,
        )

    def sign_query(
        self,
        params: MutableMapping[str, str],
        *,
        method: str,
        host: str,
        path: str,
    ) -> None:
        params.pop(SIGNATURE_PARAM, None)
        params["AWSAccessKeyId"] = self._credentials.access_key
        params["SignatureVersion"] = QUERY_SIGNATURE_VERSION
        params["SignatureMethod"] = QUERY_SIGNATURE_METHOD
        params[SIGNATURE_PARAM] = sign_v2(
            self._credentials.secret_key,
            method,
            host,
            path,
            params,
        )


def _hmac_b64(secret_key: str, payload: str, digestmod: Callable[..., Any]) -> str:
    digest = hmac.new(
        secret_key.encode("utf-8"),
        payload.encode("utf-8"),
        digestmod,
    ).digest()
    return base64.b64encode(digest).decode("ascii")
