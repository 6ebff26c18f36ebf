"""Task dispatch and completion polling on top of the marketplace client."""

from hit_dispatch.dispatch.dispatcher import TaskDispatcher
from hit_dispatch.dispatch.models import PollerState, PollOutcome, RunSummary, TaskDraft
from hit_dispatch.dispatch.poller import CompletionPoller
from hit_dispatch.dispatch.runner import DispatchRunner

__all__ = [
    "CompletionPoller",
    "DispatchRunner",
    "PollOutcome",
    "PollerState",
    "RunSummary",
    "TaskDispatcher",
    "TaskDraft",
]
