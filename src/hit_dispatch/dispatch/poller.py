"""Bounded-time completion polling for one dispatched task."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from hit_dispatch.dispatch.models import PollerState, PollOutcome
from hit_dispatch.marketplace.errors import MarketplaceError
from hit_dispatch.marketplace.models import Answered, Invalid, Pending, PollResult, TaskHandle

DEFAULT_TICK_INTERVAL_SECONDS = 60.0

logger = logging.getLogger(__name__)

AnswerConsumer = Callable[[str], None]


class TaskResultSource(Protocol):
    def get_task_result(
        self,
        task_id: str,
        *,
        question_identifier: str | None = None,
    ) -> PollResult:
        raise NotImplementedError


class CompletionPoller:
    """Polls one task on a fixed tick until answered, timed out or cancelled.

    The deadline (task lifetime) is armed when ``run`` starts. Each iteration
    waits for whichever of the next tick or the deadline comes first, so only
    one of them is acted on per cycle; on a tie the deadline wins. A failed or
    invalid poll leaves the poller waiting for the next tick. An empty answer
    is treated as not answered yet.

    ``clock`` and ``wait`` are injectable; ``wait(seconds)`` must return True
    when the wait was interrupted by cancellation.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        handle: TaskHandle,
        client: TaskResultSource,
        lifetime_seconds: float | None = None,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        question_identifier: str | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], bool] | None = None,
    ) -> None:
        lifetime = lifetime_seconds if lifetime_seconds is not None else handle.lifetime_seconds
        if lifetime is None or lifetime <= 0:
            raise ValueError(f"Task {handle.task_id} needs a positive lifetime to poll against.")
        if tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be > 0.")
        self.handle = handle
        self.client = client
        self.lifetime_seconds = float(lifetime)
        self.tick_interval_seconds = tick_interval_seconds
        self.question_identifier = question_identifier
        self.state = PollerState.WAITING
        self.polls = 0
        self._cancel_event = cancel_event or threading.Event()
        self._clock = clock
        self._wait = wait or self._cancel_event.wait
        self._last_result: PollResult | None = None

    def cancel(self) -> None:
        """Preempt the current wait; the loop ends in ``CANCELLED``."""

        self._cancel_event.set()

    def run(self, consumer: AnswerConsumer | None = None) -> PollOutcome:
        if self.state.is_terminal:
            raise RuntimeError(
                f"Poller for task {self.handle.task_id} already finished as {self.state.value}.",
            )

        started = self._clock()
        deadline = started + self.lifetime_seconds
        next_tick = started + self.tick_interval_seconds
        logger.info(
            "Polling task %s every %.0fs for up to %.0fs",
            self.handle.task_id,
            self.tick_interval_seconds,
            self.lifetime_seconds,
        )

        while True:
            if self._cancel_event.is_set():
                return self._finish(PollerState.CANCELLED)
            now = self._clock()
            if now >= deadline:
                return self._finish(PollerState.TIMED_OUT)

            if self._wait(max(0.0, min(next_tick, deadline) - now)):
                return self._finish(PollerState.CANCELLED)
            now = self._clock()
            if now >= deadline:
                return self._finish(PollerState.TIMED_OUT)
            if now < next_tick:
                continue
            while next_tick <= now:
                next_tick += self.tick_interval_seconds

            answer = self._poll_once()
            if answer:
                outcome = self._finish(PollerState.ANSWERED, answer=answer)
                if consumer is not None:
                    consumer(answer)
                return outcome

    def _poll_once(self) -> str | None:
        self.polls += 1
        task_id = self.handle.task_id
        try:
            result = self.client.get_task_result(
                task_id,
                question_identifier=self.question_identifier,
            )
        except MarketplaceError as exc:
            logger.warning("Poll %d for task %s failed [%s]: %s", self.polls, task_id, exc.code, exc)
            return None

        self._last_result = result
        if isinstance(result, Answered) and result.text:
            return result.text
        if isinstance(result, Invalid):
            logger.warning("Poll %d for task %s was invalid: %s", self.polls, task_id, result.reason)
        elif isinstance(result, Pending):
            logger.info("Task %s not answered yet (poll %d)", task_id, self.polls)
        else:
            logger.info("Task %s returned an empty answer (poll %d)", task_id, self.polls)
        return None

    def _finish(self, state: PollerState, *, answer: str | None = None) -> PollOutcome:
        self.state = state
        if state is PollerState.ANSWERED:
            logger.info("Task %s answered after %d polls", self.handle.task_id, self.polls)
        else:
            logger.info(
                "Stopped polling task %s: %s after %d polls",
                self.handle.task_id,
                state.value,
                self.polls,
            )
        return PollOutcome(
            task_id=self.handle.task_id,
            state=state,
            answer=answer,
            polls=self.polls,
            last_result=self._last_result,
        )
