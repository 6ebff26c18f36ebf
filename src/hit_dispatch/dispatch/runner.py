"""Per-item fan-out: dispatch, poll and hand off answers on worker threads."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from hit_dispatch.dispatch.dispatcher import TaskDispatcher
from hit_dispatch.dispatch.models import PollerState, RunSummary, TaskDraft
from hit_dispatch.dispatch.poller import (
    DEFAULT_TICK_INTERVAL_SECONDS,
    CompletionPoller,
    TaskResultSource,
)
from hit_dispatch.marketplace.errors import MarketplaceError
from hit_dispatch.marketplace.models import TaskHandle, WorkItem

_SLOT_WAIT_SECONDS = 0.5

logger = logging.getLogger(__name__)

AnswerHandler = Callable[[WorkItem, str], None]
PollerFactory = Callable[[TaskHandle, WorkItem, threading.Event], CompletionPoller]


class DispatchRunner:
    """Runs every draft on its own thread with no ordering between items.

    Items share nothing but the read-only clients. Dispatch failures abort
    only their own item. ``max_in_flight`` > 0 bounds how many items are
    dispatched or polled at once. Worker threads drop themselves from the
    runner when they finish, so only live items are tracked.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        dispatcher: TaskDispatcher,
        results: TaskResultSource,
        on_answer: AnswerHandler,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        max_in_flight: int = 0,
        poller_factory: PollerFactory | None = None,
    ) -> None:
        if max_in_flight < 0:
            raise ValueError("max_in_flight must be >= 0.")
        self.dispatcher = dispatcher
        self.results = results
        self.on_answer = on_answer
        self.tick_interval_seconds = tick_interval_seconds
        self._poller_factory = poller_factory or self._default_poller
        self._slots = threading.BoundedSemaphore(max_in_flight) if max_in_flight else None
        self._cancel_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._summary = RunSummary()
        self._lock = threading.Lock()

    @property
    def summary(self) -> RunSummary:
        with self._lock:
            return RunSummary(
                dispatched=self._summary.dispatched,
                answered=self._summary.answered,
                timed_out=self._summary.timed_out,
                cancelled=self._summary.cancelled,
                failed=self._summary.failed,
            )

    def start(self, draft: TaskDraft) -> threading.Thread:
        thread = threading.Thread(
            target=self._process,
            args=(draft,),
            daemon=True,
            name=f"hit-{draft.external_id}",
        )
        with self._lock:
            self._threads.append(thread)
        thread.start()
        return thread

    def join(self, timeout: float | None = None) -> RunSummary:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
        return self.summary

    def run(self, drafts: Iterable[TaskDraft]) -> RunSummary:
        for draft in drafts:
            self.start(draft)
        return self.join()

    def cancel(self) -> None:
        self._cancel_event.set()

    def _process(self, draft: TaskDraft) -> None:
        try:
            if not self._acquire_slot():
                logger.info("Skipped %s: run cancelled before dispatch", draft.external_id)
                self._count("cancelled")
                return
            try:
                self._dispatch_and_poll(draft)
            except Exception:  # noqa: BLE001
                logger.exception("Processing failed for %s", draft.external_id)
                self._count("failed")
            finally:
                if self._slots is not None:
                    self._slots.release()
        finally:
            self._forget(threading.current_thread())

    def _dispatch_and_poll(self, draft: TaskDraft) -> None:
        try:
            item, handle = self.dispatcher.dispatch(draft)
        except (MarketplaceError, ValueError) as exc:
            logger.error("Dispatch failed for %s: %s", draft.external_id, exc)
            self._count("failed")
            return
        self._count("dispatched")

        poller = self._poller_factory(handle, item, self._cancel_event)
        outcome = poller.run()
        if outcome.state is PollerState.TIMED_OUT:
            self._count("timed_out")
            return
        if outcome.state is PollerState.CANCELLED or outcome.answer is None:
            self._count("cancelled")
            return

        try:
            self.on_answer(item, outcome.answer)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Answer handler failed for %s (task %s)",
                item.external_id,
                handle.task_id,
            )
            self._count("failed")
            return
        self._count("answered")

    def _acquire_slot(self) -> bool:
        if self._slots is None:
            return not self._cancel_event.is_set()
        while not self._slots.acquire(timeout=_SLOT_WAIT_SECONDS):
            if self._cancel_event.is_set():
                return False
        if self._cancel_event.is_set():
            self._slots.release()
            return False
        return True

    def _default_poller(
        self,
        handle: TaskHandle,
        item: WorkItem,
        cancel_event: threading.Event,
    ) -> CompletionPoller:
        return CompletionPoller(
            handle=handle,
            client=self.results,
            lifetime_seconds=item.task_lifetime_seconds,
            tick_interval_seconds=self.tick_interval_seconds,
            question_identifier=self.dispatcher.renderer.answer_field,
            cancel_event=cancel_event,
        )

    def _forget(self, thread: threading.Thread) -> None:
        with self._lock:
            if thread in self._threads:
                self._threads.remove(thread)

    def _count(self, counter: str) -> None:
        with self._lock:
            setattr(self._summary, counter, getattr(self._summary, counter) + 1)
