"""
Base Provider - shared HTTP plumbing for every data source.

All providers MUST:
- Return an OperationResult from every public method
- Raise OnchainError subclasses only internally
- Never log raw secrets
"""

import asyncio
import logging
from abc import ABC
from typing import Any, Awaitable, Optional, TypeVar

import aiohttp

from onchain.config.capabilities import ProviderId, missing_credentials_message
from onchain.exceptions import FetchError, NormalizationError, OnchainError, RateLimitError
from onchain.results import OperationResult
from onchain.utils.masking import mask_mapping


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Raised by dict/list access on a payload whose shape is not the documented one
MALFORMED_PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


class BaseProvider(ABC):
    """
    Abstract base class for all providers.

    Subclasses set ``provider_id`` and ``display_name`` and wrap the body of
    each public method in ``self._guard(...)``.
    """

    DEFAULT_TIMEOUT = 30.0

    provider_id: ProviderId
    display_name: str = ""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def name(self) -> str:
        """Unique identifier, also used as the result ``source``."""
        return self.provider_id.value

    # ─────────────────────────────────────────────────────────────
    # Result helpers
    # ─────────────────────────────────────────────────────────────

    async def _guard(
        self,
        operation: str,
        work: Awaitable[T],
        degraded: bool = False,
    ) -> OperationResult[T]:
        """
        Await ``work`` and convert expected failures into a failed result.

        Expected failures are provider errors, timeouts and malformed
        payloads, which surface as one of ``MALFORMED_PAYLOAD_ERRORS``
        while parsing. Anything else is a programmer error and propagates.
        """
        try:
            payload = await work
        except OnchainError as e:
            logger.warning(f"[{self.name}] {operation} failed: {e.message}")
            logger.debug(f"[{self.name}] {operation} error detail: {e.to_dict()}")
            return OperationResult.provider_failure(self.name, e.message)
        except asyncio.TimeoutError:
            message = f"{self.display_name} request timed out after {self._timeout:g}s"
            logger.warning(f"[{self.name}] {operation} failed: {message}")
            return OperationResult.provider_failure(self.name, message)
        except MALFORMED_PAYLOAD_ERRORS as e:
            message = f"Malformed {self.display_name} response: {e!r}"
            logger.warning(f"[{self.name}] {operation} failed: {message}")
            return OperationResult.provider_failure(self.name, message)

        return OperationResult.success(payload, self.name, degraded=degraded)

    def _expect(self, value: Any, kind: type, what: str) -> Any:
        """
        Check the top-level shape of a payload before walking it.

        Raises:
            NormalizationError: ``value`` is not a ``kind``
        """
        if not isinstance(value, kind):
            raise NormalizationError(
                f"Malformed {self.display_name} response: expected {kind.__name__} for {what}, got {type(value).__name__}",
                provider=self.name,
                raw_data=str(value)[:500],
                field_name=what,
            )
        return value

    def _not_configured(self, feature: str) -> OperationResult[Any]:
        return OperationResult.not_configured(
            missing_credentials_message(feature, [self.provider_id]),
            provider=self.name,
        )

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "onchain-cli/1.0",
        }

    def _error_message(self, status: int, body: str) -> str:
        """Message for an HTTP error response; providers may override."""
        return f"{self.display_name} API error ({status}): {body[:200]}"

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """
        Make an HTTP request and decode the JSON body.

        Raises:
            RateLimitError: HTTP 429
            FetchError: Any other HTTP error or connection failure
        """
        session = await self._get_session()
        logger.debug(f"[{self.name}] {method} {url} params={mask_mapping(params or {})}")

        try:
            async with session.request(
                method,
                url,
                params=params,
                headers=headers,
                json=json_body,
            ) as response:
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message=f"{self.display_name} rate limit exceeded",
                        provider=self.name,
                        retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=self._error_message(response.status, body),
                        provider=self.name,
                        status_code=response.status,
                        response_body=body[:500],
                        request_url=url,
                    )

                return await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"{self.display_name} connection error: {e}",
                provider=self.name,
                request_url=url,
                original_error=e,
            ) from e

    async def close(self) -> None:
        """Close the HTTP session if this provider created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BaseProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
