"""Failure types raised by provider clients and the run gate."""

from __future__ import annotations


class ProviderError(RuntimeError):
    """A provider call did not yield a usable response."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        endpoint: str = "",
        status: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.endpoint = endpoint
        self.status = status
        self.attempts = attempts


class TransportFailure(ProviderError):
    """No response was received."""


class RateLimited(ProviderError):
    """The provider kept answering 429 until the attempt budget ran out."""


class ClientRejected(ProviderError):
    """4xx other than 429; never retried."""


class ServerFailure(ProviderError):
    """5xx until the attempt budget ran out."""


class ParseFailure(ProviderError):
    """A 2xx response whose body is not valid JSON."""


class CredentialMissing(ProviderError):
    """The provider is not configured."""


class GenerationFailure(ProviderError):
    """The text generation provider returned no usable content."""


class SyncBusyError(RuntimeError):
    """Another run holds the single-flight gate."""
