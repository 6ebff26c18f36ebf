from __future__ import annotations

import pytest

from fakes import ACCESS_KEY, SECRET_KEY, FakeMarketplace
from hit_dispatch.marketplace.models import Credentials

_ENV_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_ACCESS_KEY",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SECRET_KEY",
    "AWS_SQS_URL",
    "HIT_DISPATCH_SANDBOX",
    "HIT_DISPATCH_ENDPOINT_URL",
    "HIT_DISPATCH_REQUEST_TIMEOUT_SECONDS",
    "HIT_DISPATCH_REWARD_AMOUNT",
    "HIT_DISPATCH_REWARD_CURRENCY",
    "HIT_DISPATCH_ASSIGNMENT_DURATION_SECONDS",
    "HIT_DISPATCH_LIFETIME_SECONDS",
    "HIT_DISPATCH_AUTO_APPROVAL_DELAY_SECONDS",
    "HIT_DISPATCH_KEYWORDS",
    "HIT_DISPATCH_RESPONSE_GROUP",
    "HIT_DISPATCH_HIT_TYPE_ID",
    "HIT_DISPATCH_FRAME_HEIGHT",
    "HIT_DISPATCH_POLL_INTERVAL_SECONDS",
    "HIT_DISPATCH_MAX_IN_FLIGHT",
)


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials(access_key=ACCESS_KEY, secret_key=SECRET_KEY)


@pytest.fixture()
def marketplace() -> FakeMarketplace:
    return FakeMarketplace()


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every variable the settings loader reads."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture()
def configured_env(clean_env: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    clean_env.setenv("AWS_ACCESS_KEY_ID", ACCESS_KEY)
    clean_env.setenv("AWS_SECRET_ACCESS_KEY", SECRET_KEY)
    return clean_env
