"""Domain models for dispatch and completion polling."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hit_dispatch.marketplace.models import PollResult


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """Discovered item before its task body is rendered.

    ``content`` is the renderer input: question text for free-text forms,
    or the embedded page body for HTML questions.
    """

    external_id: str
    title: str
    description: str
    content: str
    display_name: str | None = None


class PollerState(str, Enum):
    """Completion poller lifecycle states."""

    WAITING = "waiting"
    ANSWERED = "answered"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not PollerState.WAITING


@dataclass(frozen=True, slots=True)
class PollOutcome:
    """Terminal result of one polling loop."""

    task_id: str
    state: PollerState
    answer: str | None
    polls: int
    last_result: PollResult | None = None


@dataclass(slots=True)
class RunSummary:
    """Aggregate counters for one fan-out run."""

    dispatched: int = 0
    answered: int = 0
    timed_out: int = 0
    cancelled: int = 0
    failed: int = 0
