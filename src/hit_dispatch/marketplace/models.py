"""Wire-level models for the human task marketplace."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

DEFAULT_RESPONSE_GROUP = "Minimal"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Requester access key pair, loaded once at startup."""

    access_key: str
    secret_key: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class WorkItem:
    """Fully rendered task-creation input for one discovered item."""

    external_id: str
    title: str
    description: str
    body_xml: str
    reward_amount: str
    reward_currency: str
    assignment_duration_seconds: int
    task_lifetime_seconds: int
    keywords: tuple[str, ...]
    auto_approval_delay_seconds: int
    idempotency_token: str
    response_group: str = DEFAULT_RESPONSE_GROUP
    hit_type_id: str | None = None


@dataclass(frozen=True, slots=True)
class TaskHandle:
    """Remote task reference used as the polling key."""

    task_id: str
    created_at: datetime
    hit_type_id: str | None = None
    lifetime_seconds: int | None = None


@dataclass(frozen=True, slots=True)
class Pending:
    """No assignment has been submitted yet."""


@dataclass(frozen=True, slots=True)
class Answered:
    """An assignment was submitted with this free-text answer."""

    text: str


@dataclass(frozen=True, slots=True)
class Invalid:
    """The marketplace marked the result request as invalid."""

    reason: str


PollResult = Pending | Answered | Invalid


@dataclass(frozen=True, slots=True)
class TaskSummary:
    """One row of a task search response."""

    task_id: str
    hit_type_id: str | None = None
    title: str | None = None
    description: str | None = None
    status: str | None = None
    creation_time: str | None = None
    expiration: str | None = None
    assignments_pending: int = 0
    assignments_available: int = 0
    assignments_completed: int = 0


class SortDirection(str, Enum):
    """Search result ordering."""

    ASCENDING = "Ascending"
    DESCENDING = "Descending"


@dataclass(frozen=True, slots=True)
class SearchFilter:
    """Optional paging and ordering for task search."""

    sort_property: str | None = None
    sort_direction: SortDirection | None = None
    page_size: int | None = None
    page_number: int | None = None
    response_group: str | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.sort_property:
            params["SortProperty"] = self.sort_property
        if self.sort_direction is not None:
            params["SortDirection"] = self.sort_direction.value
        if self.page_size is not None:
            params["PageSize"] = str(self.page_size)
        if self.page_number is not None:
            params["PageNumber"] = str(self.page_number)
        if self.response_group:
            params["ResponseGroup"] = self.response_group
        return params


@dataclass(frozen=True, slots=True)
class QueueMessage:
    """A notification received from the marketplace event queue."""

    message_id: str
    receipt_handle: str
    body: str
    md5_of_body: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)
