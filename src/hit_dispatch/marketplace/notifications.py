"""Client for the queue that receives marketplace event notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from urllib.parse import urlparse

import httpx

from hit_dispatch.marketplace.client import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, utc_now
from hit_dispatch.marketplace.errors import TransportError
from hit_dispatch.marketplace.models import Credentials, QueueMessage
from hit_dispatch.marketplace.responses import decode_receive_message
from hit_dispatch.marketplace.signing import RequestSigner, format_timestamp

QUEUE_API_VERSION = "2009-02-01"
DEFAULT_VISIBILITY_TIMEOUT_SECONDS = 15

logger = logging.getLogger(__name__)


class NotificationQueueClient:
    """Receives notification messages with version 2 query signatures."""

    def __init__(
        self,
        credentials: Credentials,
        queue_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        visibility_timeout_seconds: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        parsed = urlparse(queue_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"Invalid queue URL: {queue_url!r}")
        self.queue_url = queue_url
        self.host = parsed.netloc.lower()
        self.path = parsed.path or "/"
        self.visibility_timeout_seconds = visibility_timeout_seconds
        self._signer = RequestSigner(credentials)
        self._clock = clock
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"User-Agent": DEFAULT_USER_AGENT},
            transport=transport,
        )

    def receive_message(self) -> QueueMessage | None:
        """Receive at most one message; ``None`` when the queue is empty."""

        params = {
            "Action": "ReceiveMessage",
            "MaxNumberOfMessages": "1",
            "VisibilityTimeout": str(self.visibility_timeout_seconds),
            "AttributeName": "All",
            "Version": QUEUE_API_VERSION,
            "Timestamp": format_timestamp(self._clock()),
        }
        self._signer.sign_query(params, method="POST", host=self.host, path=self.path)
        try:
            response = self._client.post(self.queue_url, data=params)
        except httpx.HTTPError as exc:
            logger.warning("HTTP error receiving from %s: %s", self.queue_url, exc)
            raise TransportError(message=f"ReceiveMessage failed: {exc}", code="transport") from exc

        logger.debug("ReceiveMessage returned HTTP %s: %s", response.status_code, response.text)
        if not response.is_success:
            raise TransportError(
                message=f"ReceiveMessage returned HTTP {response.status_code}",
                code=str(response.status_code),
                status_code=response.status_code,
            )
        envelope = decode_receive_message(response.content)
        return envelope.messages[0] if envelope.messages else None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> NotificationQueueClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
