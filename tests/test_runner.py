from __future__ import annotations

import threading
import time
from datetime import UTC, datetime

import allure
import pytest

from fakes import FakeClock
from hit_dispatch.dispatch.dispatcher import TaskDispatcher
from hit_dispatch.dispatch.models import PollerState, RunSummary, TaskDraft
from hit_dispatch.dispatch.poller import CompletionPoller
from hit_dispatch.dispatch.runner import DispatchRunner
from hit_dispatch.marketplace.errors import TransportError
from hit_dispatch.marketplace.models import (
    Answered,
    Pending,
    PollResult,
    TaskHandle,
    WorkItem,
)

pytestmark = [
    allure.epic("Task Dispatch"),
    allure.feature("Fan-out Runner"),
]


class FakeTasks:
    """Creates tasks in memory and answers them from a per-item script."""

    def __init__(
        self,
        answers: dict[str, PollResult],
        failing: set[str] | None = None,
        *,
        create_delay_seconds: float = 0.0,
    ) -> None:
        self.answers = answers
        self.failing = failing or set()
        self.create_delay_seconds = create_delay_seconds
        self.created: list[str] = []
        self.active = 0
        self.peak_active = 0
        self._lock = threading.Lock()

    def create_task(self, item: WorkItem) -> TaskHandle:
        if item.external_id in self.failing:
            raise TransportError(message="connection refused", code="transport")
        with self._lock:
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
        try:
            if self.create_delay_seconds:
                time.sleep(self.create_delay_seconds)
        finally:
            with self._lock:
                self.active -= 1
                self.created.append(item.external_id)
        return TaskHandle(
            task_id=f"HIT-{item.external_id}",
            created_at=datetime(2026, 10, 19, tzinfo=UTC),
            lifetime_seconds=item.task_lifetime_seconds,
        )

    def get_task_result(
        self,
        task_id: str,
        *,
        question_identifier: str | None = None,
    ) -> PollResult:
        return self.answers.get(task_id.removeprefix("HIT-"), Pending())


def _drafts(*external_ids: str) -> list[TaskDraft]:
    return [
        TaskDraft(external_id=external_id, title="t", description="d", content="c")
        for external_id in external_ids
    ]


def _runner(tasks: FakeTasks, on_answer, **kwargs) -> DispatchRunner:
    def _poller(handle: TaskHandle, item: WorkItem, cancel_event: threading.Event):
        clock = FakeClock()
        return CompletionPoller(
            handle=handle,
            client=tasks,
            lifetime_seconds=item.task_lifetime_seconds,
            tick_interval_seconds=60,
            cancel_event=cancel_event,
            clock=clock,
            wait=clock.wait,
        )

    return DispatchRunner(
        dispatcher=TaskDispatcher(client=tasks),
        results=tasks,
        on_answer=on_answer,
        poller_factory=_poller,
        **kwargs,
    )


def test_run_hands_off_answers_and_counts_outcomes() -> None:
    tasks = FakeTasks(
        answers={"a": Answered(text="🐳"), "b": Answered(text="🌊")},
        failing={"d"},
    )
    received: dict[str, str] = {}
    lock = threading.Lock()

    def _on_answer(item: WorkItem, answer: str) -> None:
        with lock:
            received[item.external_id] = answer

    summary = _runner(tasks, _on_answer).run(_drafts("a", "b", "c", "d"))

    assert received == {"a": "🐳", "b": "🌊"}
    assert summary == RunSummary(dispatched=3, answered=2, timed_out=1, cancelled=0, failed=1)
    assert sorted(tasks.created) == ["a", "b", "c"]


def test_handler_failure_is_isolated_to_its_item() -> None:
    tasks = FakeTasks(answers={"a": Answered(text="x"), "b": Answered(text="y")})
    handled: list[str] = []

    def _on_answer(item: WorkItem, answer: str) -> None:
        if item.external_id == "a":
            raise RuntimeError("downstream refused")
        handled.append(answer)

    summary = _runner(tasks, _on_answer).run(_drafts("a", "b"))

    assert handled == ["y"]
    assert summary.answered == 1
    assert summary.failed == 1


def test_bounded_in_flight_limits_concurrent_items() -> None:
    tasks = FakeTasks(
        answers={name: Answered(text=name) for name in "abcde"},
        create_delay_seconds=0.05,
    )
    handled: list[str] = []
    lock = threading.Lock()

    def _on_answer(_item: WorkItem, answer: str) -> None:
        with lock:
            handled.append(answer)

    summary = _runner(tasks, _on_answer, max_in_flight=2).run(_drafts(*"abcde"))

    assert sorted(handled) == list("abcde")
    assert summary.answered == 5
    assert 1 <= tasks.peak_active <= 2


def test_unbounded_runner_dispatches_items_concurrently() -> None:
    tasks = FakeTasks(answers={}, create_delay_seconds=0.2)

    _runner(tasks, lambda _item, _answer: None).run(_drafts(*"abc"))

    assert tasks.peak_active >= 2


def test_finished_threads_are_released() -> None:
    tasks = FakeTasks(answers={name: Answered(text=name) for name in "abcde"})
    runner = _runner(tasks, lambda _item, _answer: None)

    summary = runner.run(_drafts(*"abcde"))

    assert summary.answered == 5
    assert runner._threads == []


def test_cancel_while_polling_ends_every_item_cancelled() -> None:
    tasks = FakeTasks(answers={})
    handled: list[str] = []

    def _poller(handle: TaskHandle, item: WorkItem, cancel_event: threading.Event):
        return CompletionPoller(
            handle=handle,
            client=tasks,
            lifetime_seconds=item.task_lifetime_seconds,
            tick_interval_seconds=60,
            cancel_event=cancel_event,
        )

    runner = DispatchRunner(
        dispatcher=TaskDispatcher(client=tasks),
        results=tasks,
        on_answer=lambda _item, answer: handled.append(answer),
        poller_factory=_poller,
    )
    for draft in _drafts(*"abc"):
        runner.start(draft)
    deadline = time.monotonic() + 5
    while runner.summary.dispatched < 3 and time.monotonic() < deadline:
        time.sleep(0.01)

    runner.cancel()
    summary = runner.join(timeout=5)

    assert summary == RunSummary(dispatched=3, answered=0, timed_out=0, cancelled=3, failed=0)
    assert handled == []
    assert runner._threads == []


def test_unexpected_poller_error_counts_as_failed() -> None:
    tasks = FakeTasks(answers={"b": Answered(text="ok")})
    handled: list[str] = []

    def _poller(handle: TaskHandle, item: WorkItem, cancel_event: threading.Event):
        if item.external_id == "a":
            raise RuntimeError("poller construction failed")
        clock = FakeClock()
        return CompletionPoller(
            handle=handle,
            client=tasks,
            lifetime_seconds=item.task_lifetime_seconds,
            cancel_event=cancel_event,
            clock=clock,
            wait=clock.wait,
        )

    runner = DispatchRunner(
        dispatcher=TaskDispatcher(client=tasks),
        results=tasks,
        on_answer=lambda _item, answer: handled.append(answer),
        poller_factory=_poller,
    )

    summary = runner.run(_drafts("a", "b"))

    assert handled == ["ok"]
    assert summary == RunSummary(dispatched=2, answered=1, timed_out=0, cancelled=0, failed=1)
    assert runner._threads == []


def test_cancel_before_start_skips_dispatch() -> None:
    tasks = FakeTasks(answers={})
    runner = _runner(tasks, lambda _item, _answer: None)

    runner.cancel()
    summary = runner.run(_drafts("a", "b"))

    assert summary.cancelled == 2
    assert summary.dispatched == 0
    assert tasks.created == []


def test_default_poller_uses_runner_tick_and_answer_field() -> None:
    tasks = FakeTasks(answers={})
    runner = DispatchRunner(
        dispatcher=TaskDispatcher(client=tasks),
        results=tasks,
        on_answer=lambda _item, _answer: None,
        tick_interval_seconds=5,
    )
    item, handle = runner.dispatcher.dispatch(_drafts("a")[0])

    poller = runner._default_poller(handle, item, threading.Event())

    assert poller.tick_interval_seconds == 5
    assert poller.lifetime_seconds == item.task_lifetime_seconds
    assert poller.question_identifier == "answer"
    assert poller.state is PollerState.WAITING


def test_rejects_negative_max_in_flight() -> None:
    tasks = FakeTasks(answers={})

    with pytest.raises(ValueError, match="max_in_flight"):
        DispatchRunner(
            dispatcher=TaskDispatcher(client=tasks),
            results=tasks,
            on_answer=lambda _item, _answer: None,
            max_in_flight=-1,
        )
