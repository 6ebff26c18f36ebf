"""Process-wide collaborators built once at startup and passed explicitly."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from hit_dispatch.config import Settings
from hit_dispatch.dispatch.dispatcher import TaskDispatcher
from hit_dispatch.dispatch.rendering import (
    EXTERNAL_SUBMIT_URL,
    SANDBOX_EXTERNAL_SUBMIT_URL,
    FreeTextQuestionRenderer,
    HtmlQuestionRenderer,
    TaskBodyRenderer,
)
from hit_dispatch.dispatch.runner import AnswerHandler, DispatchRunner
from hit_dispatch.marketplace.client import MarketplaceClient
from hit_dispatch.marketplace.models import Credentials
from hit_dispatch.marketplace.notifications import NotificationQueueClient


@dataclass(slots=True)
class AppContext:
    """Shared, read-only handles owned by the running process."""

    settings: Settings
    credentials: Credentials
    client: MarketplaceClient

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> AppContext:
        """Validate settings and open the marketplace client.

        Raises ``ValueError`` for missing credentials or invalid settings;
        callers treat that as a fatal startup error.
        """

        credentials = settings.require_credentials()
        settings.validate()
        client = MarketplaceClient(
            credentials,
            endpoint_url=settings.marketplace.endpoint_url,
            timeout_seconds=settings.marketplace.request_timeout_seconds,
            transport=transport,
        )
        return cls(settings=settings, credentials=credentials, client=client)

    def renderer(self, *, html: bool = False) -> TaskBodyRenderer:
        if html:
            submit_url = (
                SANDBOX_EXTERNAL_SUBMIT_URL
                if self.settings.marketplace.sandbox
                else EXTERNAL_SUBMIT_URL
            )
            return HtmlQuestionRenderer(
                frame_height=self.settings.task_defaults.frame_height,
                submit_url=submit_url,
            )
        return FreeTextQuestionRenderer()

    def dispatcher(self, *, renderer: TaskBodyRenderer | None = None) -> TaskDispatcher:
        return TaskDispatcher(
            client=self.client,
            defaults=self.settings.task_defaults,
            renderer=renderer or self.renderer(),
        )

    def runner(
        self,
        on_answer: AnswerHandler,
        *,
        renderer: TaskBodyRenderer | None = None,
    ) -> DispatchRunner:
        return DispatchRunner(
            dispatcher=self.dispatcher(renderer=renderer),
            results=self.client,
            on_answer=on_answer,
            tick_interval_seconds=self.settings.poller.tick_interval_seconds,
            max_in_flight=self.settings.poller.max_in_flight,
        )

    def notification_queue(
        self,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> NotificationQueueClient:
        queue_url = self.settings.marketplace.queue_url
        if queue_url is None:
            raise ValueError("AWS_SQS_URL is required to read marketplace notifications.")
        return NotificationQueueClient(
            self.credentials,
            queue_url,
            timeout_seconds=self.settings.marketplace.request_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
