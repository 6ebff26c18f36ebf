"""Controllers for dispatch CLI commands."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from hit_dispatch.config import Settings
from hit_dispatch.context import AppContext
from hit_dispatch.dispatch.models import PollerState, TaskDraft
from hit_dispatch.dispatch.poller import CompletionPoller
from hit_dispatch.marketplace.models import (
    Answered,
    Invalid,
    Pending,
    SearchFilter,
    SortDirection,
)


@dataclass(slots=True)
class DispatchCommand:
    """CLI input for creating one task."""

    external_id: str
    title: str
    description: str
    content: str
    html: bool = False
    wait: bool = False


@dataclass(slots=True)
class ResultCommand:
    """CLI input for a single result lookup."""

    task_id: str


@dataclass(slots=True)
class SearchCommand:
    """CLI input for task search."""

    page_size: int | None = None
    page_number: int | None = None
    sort_property: str | None = None
    descending: bool = False


class DispatchCliController:
    """Coordinates dispatch, lookup and notification CLI operations."""

    def __init__(self, *, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def dispatch(self, command: DispatchCommand) -> list[str]:
        with self._context() as context:
            dispatcher = context.dispatcher(renderer=context.renderer(html=command.html))
            item, handle = dispatcher.dispatch(
                TaskDraft(
                    external_id=command.external_id,
                    title=command.title,
                    description=command.description,
                    content=command.content,
                ),
            )
            lines = [
                f"Task created: task_id={handle.task_id} external_id={item.external_id}",
                f"Idempotency token: {item.idempotency_token}",
            ]
            if not command.wait:
                return lines

            outcome = CompletionPoller(
                handle=handle,
                client=context.client,
                lifetime_seconds=item.task_lifetime_seconds,
                tick_interval_seconds=context.settings.poller.tick_interval_seconds,
                question_identifier=dispatcher.renderer.answer_field,
            ).run()
        lines.append(f"Polling finished: state={outcome.state.value} polls={outcome.polls}")
        if outcome.state is PollerState.ANSWERED:
            lines.append(f"Answer: {outcome.answer}")
        return lines

    def result(self, command: ResultCommand) -> list[str]:
        with self._context() as context:
            result = context.client.get_task_result(command.task_id)
        if isinstance(result, Answered):
            if not result.text:
                return [f"Task {command.task_id}: submitted with an empty answer"]
            return [f"Task {command.task_id}: answered", f"Answer: {result.text}"]
        if isinstance(result, Invalid):
            return [f"Task {command.task_id}: invalid request ({result.reason})"]
        if isinstance(result, Pending):
            return [f"Task {command.task_id}: pending"]
        return [f"Task {command.task_id}: unknown result {result!r}"]

    def search(self, command: SearchCommand) -> list[str]:
        search_filter = SearchFilter(
            sort_property=command.sort_property,
            sort_direction=SortDirection.DESCENDING if command.descending else None,
            page_size=command.page_size,
            page_number=command.page_number,
        )
        with self._context() as context:
            tasks = context.client.search_tasks(search_filter)
        lines = [f"Tasks: {len(tasks)}"]
        lines.extend(
            f"- {task.task_id} status={task.status or 'unknown'} "
            f"completed={task.assignments_completed} pending={task.assignments_pending} "
            f"title={task.title or ''}"
            for task in tasks
        )
        return lines

    def receive(self) -> list[str]:
        with (
            self._context() as context,
            context.notification_queue(transport=self._transport) as queue,
        ):
            message = queue.receive_message()
        if message is None:
            return ["No notifications waiting."]
        return [
            f"Message: id={message.message_id}",
            f"Body: {message.body}",
        ]

    def _context(self) -> AppContext:
        return AppContext.build(Settings.from_env(), transport=self._transport)
