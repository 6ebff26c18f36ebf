from __future__ import annotations

import allure
import pytest

from fakes import ACCESS_KEY, SECRET_KEY
from hit_dispatch.config import MarketplaceSettings, PollerSettings, Settings, TaskDefaults
from hit_dispatch.context import AppContext
from hit_dispatch.dispatch.rendering import (
    EXTERNAL_SUBMIT_URL,
    SANDBOX_EXTERNAL_SUBMIT_URL,
    FreeTextQuestionRenderer,
    HtmlQuestionRenderer,
)
from hit_dispatch.marketplace.client import DEFAULT_ENDPOINT_URL, SANDBOX_ENDPOINT_URL
from hit_dispatch.marketplace.models import Credentials

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings & Startup"),
]


def test_from_env_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = Settings.from_env()

    assert settings.credentials is None
    assert settings.marketplace.endpoint_url == DEFAULT_ENDPOINT_URL
    assert settings.marketplace.sandbox is False
    assert settings.marketplace.queue_url is None
    assert settings.task_defaults.reward_amount == "0.15"
    assert settings.task_defaults.lifetime_seconds == 1200
    assert settings.task_defaults.keywords == ("twitter", "emoji")
    assert settings.poller.tick_interval_seconds == 60.0


def test_from_env_reads_credentials_and_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("AWS_ACCESS_KEY", ACCESS_KEY)
    clean_env.setenv("AWS_SECRET_KEY", SECRET_KEY)
    clean_env.setenv("HIT_DISPATCH_SANDBOX", "yes")
    clean_env.setenv("HIT_DISPATCH_KEYWORDS", " emoji , ,translate ")
    clean_env.setenv("HIT_DISPATCH_LIFETIME_SECONDS", "300")
    clean_env.setenv("HIT_DISPATCH_POLL_INTERVAL_SECONDS", "15")
    clean_env.setenv("AWS_SQS_URL", "https://queue.example.com/1/q")

    settings = Settings.from_env()

    assert settings.credentials == Credentials(access_key=ACCESS_KEY, secret_key=SECRET_KEY)
    assert settings.marketplace.sandbox is True
    assert settings.marketplace.endpoint_url == SANDBOX_ENDPOINT_URL
    assert settings.marketplace.queue_url == "https://queue.example.com/1/q"
    assert settings.task_defaults.keywords == ("emoji", "translate")
    assert settings.task_defaults.lifetime_seconds == 300
    assert settings.poller.tick_interval_seconds == 15.0


def test_from_env_rejects_invalid_boolean(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("HIT_DISPATCH_SANDBOX", "maybe")

    with pytest.raises(ValueError, match="HIT_DISPATCH_SANDBOX"):
        Settings.from_env()


def test_require_credentials_is_fatal_when_missing() -> None:
    with pytest.raises(ValueError, match="AWS_ACCESS_KEY_ID"):
        Settings().require_credentials()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(marketplace=MarketplaceSettings(endpoint_url="ftp://x")), "ENDPOINT_URL"),
        (Settings(marketplace=MarketplaceSettings(queue_url="queue")), "AWS_SQS_URL"),
        (Settings(task_defaults=TaskDefaults(reward_amount="free")), "REWARD_AMOUNT"),
        (Settings(task_defaults=TaskDefaults(reward_amount="0")), "REWARD_AMOUNT"),
        (Settings(task_defaults=TaskDefaults(lifetime_seconds=0)), "LIFETIME_SECONDS"),
        (Settings(task_defaults=TaskDefaults(frame_height=0)), "FRAME_HEIGHT"),
        (Settings(poller=PollerSettings(tick_interval_seconds=0)), "POLL_INTERVAL"),
        (Settings(poller=PollerSettings(max_in_flight=-1)), "MAX_IN_FLIGHT"),
    ],
)
def test_validate_rejects_values_the_marketplace_would_refuse(
    settings: Settings,
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_validate_accepts_defaults() -> None:
    Settings().validate()


def test_app_context_requires_credentials() -> None:
    with pytest.raises(ValueError, match="credentials are required"):
        AppContext.build(Settings())


def test_app_context_picks_renderer_and_submit_url(credentials: Credentials) -> None:
    sandbox = Settings(credentials=credentials, marketplace=MarketplaceSettings(sandbox=True))
    production = Settings(credentials=credentials)

    with AppContext.build(sandbox) as context:
        html = context.renderer(html=True)
        assert isinstance(html, HtmlQuestionRenderer)
        assert html.submit_url == SANDBOX_EXTERNAL_SUBMIT_URL
        assert isinstance(context.renderer(), FreeTextQuestionRenderer)
        assert context.dispatcher().defaults is sandbox.task_defaults

    with AppContext.build(production) as context:
        html = context.renderer(html=True)
        assert isinstance(html, HtmlQuestionRenderer)
        assert html.submit_url == EXTERNAL_SUBMIT_URL
        runner = context.runner(lambda _item, _answer: None)
        assert runner.results is context.client


def test_app_context_notification_queue_requires_url(credentials: Credentials) -> None:
    with AppContext.build(Settings(credentials=credentials)) as context:
        with pytest.raises(ValueError, match="AWS_SQS_URL"):
            context.notification_queue()
