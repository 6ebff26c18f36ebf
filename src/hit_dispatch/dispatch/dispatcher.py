"""Turns discovered drafts into paid remote tasks."""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import uuid4

from hit_dispatch.config import TaskDefaults
from hit_dispatch.dispatch.models import TaskDraft
from hit_dispatch.dispatch.rendering import FreeTextQuestionRenderer, TaskBodyRenderer
from hit_dispatch.marketplace.models import TaskHandle, WorkItem

MAX_IDEMPOTENCY_TOKEN_CHARS = 64

logger = logging.getLogger(__name__)


class TaskCreator(Protocol):
    def create_task(self, item: WorkItem) -> TaskHandle:
        raise NotImplementedError


class TaskDispatcher:
    """Renders, populates and submits one task per work item.

    Each ``create`` call spends money on the marketplace. Retrying the same
    ``WorkItem`` is safe only because it carries the same idempotency token;
    ``build_work_item`` mints a fresh token every time.
    """

    def __init__(
        self,
        *,
        client: TaskCreator,
        defaults: TaskDefaults | None = None,
        renderer: TaskBodyRenderer | None = None,
    ) -> None:
        self.client = client
        self.defaults = defaults or TaskDefaults()
        self.renderer = renderer or FreeTextQuestionRenderer()

    def build_work_item(self, draft: TaskDraft) -> WorkItem:
        defaults = self.defaults
        return WorkItem(
            external_id=draft.external_id,
            title=draft.title,
            description=draft.description,
            body_xml=self.renderer.render(draft),
            reward_amount=defaults.reward_amount,
            reward_currency=defaults.reward_currency,
            assignment_duration_seconds=defaults.assignment_duration_seconds,
            task_lifetime_seconds=defaults.lifetime_seconds,
            keywords=tuple(defaults.keywords),
            auto_approval_delay_seconds=defaults.auto_approval_delay_seconds,
            idempotency_token=new_idempotency_token(draft.external_id),
            response_group=defaults.response_group,
            hit_type_id=defaults.hit_type_id,
        )

    def create(self, item: WorkItem) -> TaskHandle:
        logger.info(
            "Creating task for %s (reward=%s %s)",
            item.external_id,
            item.reward_amount,
            item.reward_currency,
        )
        handle = self.client.create_task(item)
        logger.info("Created task %s for %s", handle.task_id, item.external_id)
        return handle

    def dispatch(self, draft: TaskDraft) -> tuple[WorkItem, TaskHandle]:
        item = self.build_work_item(draft)
        return item, self.create(item)


def new_idempotency_token(external_id: str) -> str:
    suffix = uuid4().hex
    prefix_budget = MAX_IDEMPOTENCY_TOKEN_CHARS - len(suffix) - 1
    return f"{external_id[:prefix_budget]}-{suffix}"
