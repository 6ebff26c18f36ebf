"""Requester-side client for the human task marketplace."""

from hit_dispatch.marketplace.client import MarketplaceClient
from hit_dispatch.marketplace.errors import (
    AnswerDecodeError,
    DecodeError,
    InvalidResponse,
    MarketplaceError,
    TransportError,
)
from hit_dispatch.marketplace.models import (
    Answered,
    Credentials,
    Invalid,
    Pending,
    PollResult,
    TaskHandle,
    WorkItem,
)
from hit_dispatch.marketplace.notifications import NotificationQueueClient

__all__ = [
    "AnswerDecodeError",
    "Answered",
    "Credentials",
    "DecodeError",
    "Invalid",
    "InvalidResponse",
    "MarketplaceClient",
    "MarketplaceError",
    "NotificationQueueClient",
    "Pending",
    "PollResult",
    "TaskHandle",
    "TransportError",
    "WorkItem",
]
