"""
Onchain Exceptions - Custom exception hierarchy.

These exceptions are raised INSIDE provider modules only. Every provider
converts them into a failed OperationResult at its public boundary, so the
orchestrator's fallback loop never sees a raised provider error.

Each subclass lists the attributes worth logging in ``detail_fields``;
``to_dict`` is what BaseProvider logs at DEBUG when a call fails.
"""

from typing import Any, Optional


class OnchainError(Exception):
    """Base exception for all onchain errors."""

    detail_fields: tuple[str, ...] = ()

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.chain = chain
        self.original_error = original_error
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Non-empty fields only, for debug logging."""
        data: dict[str, Any] = {"error_type": type(self).__name__, "message": self.message}
        for name in ("provider", "chain", *self.detail_fields):
            value = getattr(self, name, None)
            if value not in (None, "", [], ()):
                data[name] = value
        if self.original_error is not None:
            data["original_error"] = repr(self.original_error)
        if self.context:
            data["context"] = self.context
        return data


class FetchError(OnchainError):
    """Error during data fetching from a provider API or tool."""

    detail_fields = ("status_code", "request_url", "response_body")

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url


class RateLimitError(FetchError):
    """HTTP 429 from a provider."""

    detail_fields = ("status_code", "retry_after_seconds")

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
    ) -> None:
        super().__init__(message, provider, chain, status_code=429)
        self.retry_after_seconds = retry_after_seconds


class NormalizationError(OnchainError):
    """Provider payload could not be mapped to the normalized shape."""

    detail_fields = ("field_name", "raw_data")

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error)
        self.raw_data = raw_data
        self.field_name = field_name


class ChainNotSupportedError(OnchainError):
    """Requested chain is not supported by the provider."""

    detail_fields = ("supported_chains",)

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        supported_chains: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, provider, chain)
        self.supported_chains = supported_chains or []


class ConfigurationError(OnchainError):
    """Unreadable file, unknown key, or an unusable credential."""

    detail_fields = ("config_key",)

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, provider, None, original_error)
        self.config_key = config_key


class ToolNotAvailableError(OnchainError):
    """An external command-line tool the provider drives is not installed."""

    detail_fields = ("tool",)

    def __init__(self, message: str, provider: Optional[str] = None, tool: Optional[str] = None) -> None:
        super().__init__(message, provider)
        self.tool = tool
