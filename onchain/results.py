"""
Operation Results - the tagged success/failure value every provider returns.

Expected failures (missing credentials, remote 4xx/5xx, malformed payloads,
timeouts) travel as data inside an OperationResult. They are never raised
across a provider or orchestrator boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(Enum):
    """The three user-visible failure categories."""
    NOT_CONFIGURED = "not_configured"
    PROVIDER_FAILURE = "provider_failure"
    EXHAUSTED_FALLBACK = "exhausted_fallback"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


@dataclass(frozen=True)
class OperationError:
    """
    Structured failure reason.

    For EXHAUSTED_FALLBACK the individual provider reasons are kept in
    ``failures`` so callers can tell configuration gaps from remote errors.
    """
    kind: ErrorKind
    message: str
    provider: Optional[str] = None
    missing_credentials: tuple[str, ...] = ()
    failures: tuple["OperationError", ...] = ()
    tried_chains: tuple[str, ...] = ()

    @property
    def not_configured_providers(self) -> list[str]:
        return [
            f.provider for f in self.failures
            if f.kind is ErrorKind.NOT_CONFIGURED and f.provider
        ]

    @property
    def failed_providers(self) -> list[str]:
        return [
            f.provider for f in self.failures
            if f.kind is ErrorKind.PROVIDER_FAILURE and f.provider
        ]

    def describe(self) -> str:
        """One-line user-facing description citing the error kind."""
        return f"[{self.kind.label}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.provider:
            data["provider"] = self.provider
        if self.missing_credentials:
            data["missing_credentials"] = list(self.missing_credentials)
        if self.failures:
            data["failures"] = [f.to_dict() for f in self.failures]
        if self.tried_chains:
            data["tried_chains"] = list(self.tried_chains)
        return data

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    ``{ok: True, payload, source}`` or ``{ok: False, error}``.

    A successful result always names exactly one source provider. ``chain``
    and ``tried_chains`` are only populated by the multi-chain resolver.
    """
    ok: bool
    payload: Optional[T] = None
    source: Optional[str] = None
    error: Optional[OperationError] = None
    degraded: bool = False
    chain: Optional[str] = None
    tried_chains: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.ok and (self.source is None or self.error is not None):
            raise ValueError("successful result requires a source and no error")
        if not self.ok and self.error is None:
            raise ValueError("failed result requires an error")

    # ─────────────────────────────────────────────────────────────
    # Constructors
    # ─────────────────────────────────────────────────────────────

    @classmethod
    def success(
        cls,
        payload: T,
        source: str,
        degraded: bool = False,
    ) -> "OperationResult[T]":
        return cls(ok=True, payload=payload, source=source, degraded=degraded)

    @classmethod
    def failure(cls, error: OperationError) -> "OperationResult[T]":
        return cls(ok=False, error=error, tried_chains=error.tried_chains)

    @classmethod
    def not_configured(
        cls,
        message: str,
        missing_credentials: tuple[str, ...] = (),
        provider: Optional[str] = None,
    ) -> "OperationResult[T]":
        return cls.failure(OperationError(
            kind=ErrorKind.NOT_CONFIGURED,
            message=message,
            provider=provider,
            missing_credentials=tuple(missing_credentials),
        ))

    @classmethod
    def provider_failure(cls, provider: str, message: str) -> "OperationResult[T]":
        return cls.failure(OperationError(
            kind=ErrorKind.PROVIDER_FAILURE,
            message=message,
            provider=provider,
        ))

    # ─────────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────────

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def with_chain(self, chain: str, tried_chains: tuple[str, ...]) -> "OperationResult[T]":
        """Copy of this result annotated with multi-chain resolution info."""
        return OperationResult(
            ok=self.ok,
            payload=self.payload,
            source=self.source,
            error=self.error,
            degraded=self.degraded,
            chain=chain,
            tried_chains=tried_chains,
        )
