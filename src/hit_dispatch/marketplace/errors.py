"""Marketplace error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class MarketplaceError(Exception):
    """Base marketplace call error."""

    message: str
    code: str = "marketplace_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class TransportError(MarketplaceError):
    """Network, TLS, timeout or non-2xx HTTP failure. Never retried by the client."""

    status_code: int | None = None


@dataclass(slots=True)
class DecodeError(MarketplaceError):
    """Response envelope is not the XML document the operation expects."""


@dataclass(slots=True)
class AnswerDecodeError(DecodeError):
    """Envelope decoded, but the nested answer document inside it did not."""


@dataclass(slots=True)
class InvalidResponse(MarketplaceError):
    """The marketplace flagged the request as invalid."""

    error_codes: tuple[str, ...] = field(default_factory=tuple)
