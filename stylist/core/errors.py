from __future__ import annotations


class StylistError(Exception):
    """Base class for errors raised inside the stylist pipeline."""


class NetworkError(StylistError):
    """Timeout or connection failure talking to an external service."""


class ProviderError(StylistError):
    """Non-2xx answer from the chat provider or a marketplace endpoint."""

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"provider returned HTTP {status}: {body[:200]}")


class ParseError(StylistError):
    """Text could not be coerced into the expected shape."""


class CredentialsMissingError(StylistError):
    """Chat provider credentials are empty or placeholders."""
