"""Runtime configuration for task dispatch and completion polling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from urllib.parse import urlparse

from hit_dispatch.marketplace.client import (
    DEFAULT_ENDPOINT_URL,
    DEFAULT_TIMEOUT_SECONDS,
    SANDBOX_ENDPOINT_URL,
)
from hit_dispatch.marketplace.models import DEFAULT_RESPONSE_GROUP, Credentials
from hit_dispatch.marketplace.questions import DEFAULT_FRAME_HEIGHT

DEFAULT_KEYWORDS = ("twitter", "emoji")


@dataclass(slots=True)
class MarketplaceSettings:
    """Endpoint and transport settings."""

    endpoint_url: str = DEFAULT_ENDPOINT_URL
    sandbox: bool = False
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    queue_url: str | None = None


@dataclass(slots=True)
class TaskDefaults:
    """Per-task parameters applied to every dispatched item."""

    reward_amount: str = "0.15"
    reward_currency: str = "USD"
    assignment_duration_seconds: int = 600
    lifetime_seconds: int = 1_200
    auto_approval_delay_seconds: int = 0
    keywords: tuple[str, ...] = DEFAULT_KEYWORDS
    response_group: str = DEFAULT_RESPONSE_GROUP
    hit_type_id: str | None = None
    frame_height: int = DEFAULT_FRAME_HEIGHT


@dataclass(slots=True)
class PollerSettings:
    """Completion polling and fan-out settings."""

    tick_interval_seconds: float = 60.0
    max_in_flight: int = 0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    credentials: Credentials | None = None
    marketplace: MarketplaceSettings = field(default_factory=MarketplaceSettings)
    task_defaults: TaskDefaults = field(default_factory=TaskDefaults)
    poller: PollerSettings = field(default_factory=PollerSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from the process environment."""

        sandbox = _env_bool("HIT_DISPATCH_SANDBOX", default=False)
        default_endpoint = SANDBOX_ENDPOINT_URL if sandbox else DEFAULT_ENDPOINT_URL
        return cls(
            credentials=_credentials_from_env(),
            marketplace=MarketplaceSettings(
                endpoint_url=os.getenv("HIT_DISPATCH_ENDPOINT_URL", default_endpoint).strip(),
                sandbox=sandbox,
                request_timeout_seconds=float(
                    os.getenv("HIT_DISPATCH_REQUEST_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)),
                ),
                queue_url=os.getenv("AWS_SQS_URL", "").strip() or None,
            ),
            task_defaults=TaskDefaults(
                reward_amount=os.getenv("HIT_DISPATCH_REWARD_AMOUNT", "0.15").strip(),
                reward_currency=os.getenv("HIT_DISPATCH_REWARD_CURRENCY", "USD").strip(),
                assignment_duration_seconds=int(
                    os.getenv("HIT_DISPATCH_ASSIGNMENT_DURATION_SECONDS", "600"),
                ),
                lifetime_seconds=int(os.getenv("HIT_DISPATCH_LIFETIME_SECONDS", "1200")),
                auto_approval_delay_seconds=int(
                    os.getenv("HIT_DISPATCH_AUTO_APPROVAL_DELAY_SECONDS", "0"),
                ),
                keywords=_collect_keywords(),
                response_group=os.getenv(
                    "HIT_DISPATCH_RESPONSE_GROUP",
                    DEFAULT_RESPONSE_GROUP,
                ).strip(),
                hit_type_id=os.getenv("HIT_DISPATCH_HIT_TYPE_ID", "").strip() or None,
                frame_height=int(
                    os.getenv("HIT_DISPATCH_FRAME_HEIGHT", str(DEFAULT_FRAME_HEIGHT)),
                ),
            ),
            poller=PollerSettings(
                tick_interval_seconds=float(
                    os.getenv("HIT_DISPATCH_POLL_INTERVAL_SECONDS", "60"),
                ),
                max_in_flight=int(os.getenv("HIT_DISPATCH_MAX_IN_FLIGHT", "0")),
            ),
        )

    def require_credentials(self) -> Credentials:
        """Return credentials or raise the fatal startup error."""

        if self.credentials is None:
            raise ValueError(
                "Marketplace credentials are required. "
                "Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY.",
            )
        return self.credentials

    def validate(self) -> None:
        """Raise configuration error for values the marketplace would reject."""

        _validate_endpoint_url(self.marketplace.endpoint_url, name="HIT_DISPATCH_ENDPOINT_URL")
        if self.marketplace.queue_url is not None:
            _validate_endpoint_url(self.marketplace.queue_url, name="AWS_SQS_URL")
        if self.marketplace.request_timeout_seconds <= 0:
            raise ValueError("HIT_DISPATCH_REQUEST_TIMEOUT_SECONDS must be > 0.")

        defaults = self.task_defaults
        _validate_reward_amount(defaults.reward_amount)
        if not defaults.reward_currency:
            raise ValueError("HIT_DISPATCH_REWARD_CURRENCY must not be empty.")
        if defaults.assignment_duration_seconds <= 0:
            raise ValueError("HIT_DISPATCH_ASSIGNMENT_DURATION_SECONDS must be > 0.")
        if defaults.lifetime_seconds <= 0:
            raise ValueError("HIT_DISPATCH_LIFETIME_SECONDS must be > 0.")
        if defaults.auto_approval_delay_seconds < 0:
            raise ValueError("HIT_DISPATCH_AUTO_APPROVAL_DELAY_SECONDS must be >= 0.")
        if defaults.frame_height <= 0:
            raise ValueError("HIT_DISPATCH_FRAME_HEIGHT must be > 0.")

        if self.poller.tick_interval_seconds <= 0:
            raise ValueError("HIT_DISPATCH_POLL_INTERVAL_SECONDS must be > 0.")
        if self.poller.max_in_flight < 0:
            raise ValueError("HIT_DISPATCH_MAX_IN_FLIGHT must be >= 0.")


def _credentials_from_env() -> Credentials | None:
    access_key = _first_env("AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY")
    secret_key = _first_env("AWS_SECRET_ACCESS_KEY", "AWS_SECRET_KEY")
    if not access_key or not secret_key:
        return None
    return Credentials(access_key=access_key, secret_key=secret_key)


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def _collect_keywords() -> tuple[str, ...]:
    raw = os.getenv("HIT_DISPATCH_KEYWORDS")
    if raw is None:
        return DEFAULT_KEYWORDS
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _validate_reward_amount(value: str) -> None:
    try:
        amount = Decimal(value)
    except InvalidOperation as error:
        raise ValueError(f"Invalid HIT_DISPATCH_REWARD_AMOUNT: {value!r}") from error
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"HIT_DISPATCH_REWARD_AMOUNT must be a positive amount, got {value!r}")


def _validate_endpoint_url(url: str, *, name: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Invalid {name}: {url!r}. Expected absolute http(s) URL.")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
