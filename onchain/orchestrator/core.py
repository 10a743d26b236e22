"""
Orchestrator - Fallback execution.

============================================================
RESPONSIBILITY
============================================================
Runs one logical operation against its ordered provider list.

- Filter the plan by capability (no network call when nothing is usable)
- Try the preferred provider first, the degraded provider last
- Stop at the first success, record every failure
- Bound every call with the configured timeout

Provider failures never raise out of ``run``. Programmer errors do.
============================================================
"""

import asyncio
import dataclasses
import logging
from typing import Any, Iterable, Mapping, Optional

from onchain.config.capabilities import (
    PROVIDER_REQUIREMENTS,
    ProviderId,
    missing_credentials_message,
)
from onchain.exceptions import OnchainError
from onchain.orchestrator.operations import DEFAULT_OPERATIONS
from onchain.orchestrator.registry import OperationPlan, ProviderRegistry
from onchain.results import ErrorKind, OperationError, OperationResult


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 30.0


class Orchestrator:
    """
    Executes operations with strict fallback discipline.

    Usage:
        orchestrator = Orchestrator(build_provider_registry(config))
        result = await orchestrator.run("price.token", {"token": "eth"})
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        operations: Optional[Mapping[str, OperationPlan]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._registry = registry
        self._operations = dict(operations if operations is not None else DEFAULT_OPERATIONS)
        self._timeout = timeout

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def timeout(self) -> float:
        return self._timeout

    def get_plan(self, operation_id: str) -> OperationPlan:
        try:
            return self._operations[operation_id]
        except KeyError:
            raise ValueError(f"Unknown operation: {operation_id}") from None

    # --------------------------------------------------------
    # Candidate selection
    # --------------------------------------------------------

    def _usable(self, plan: OperationPlan, provider_id: ProviderId) -> bool:
        if self._registry.is_capable(provider_id):
            return True
        return provider_id == plan.default_provider and self._registry.get(provider_id) is not None

    def plan_candidates(
        self,
        plan: OperationPlan,
        only: Optional[Iterable[str]] = None,
    ) -> tuple[list[ProviderId], list[ProviderId]]:
        """
        Split the plan into (candidates in call order, skipped providers).

        ``only`` restricts the plan to the named providers, e.g. forcing
        the browser scraper.
        """
        ordered = list(plan.all_providers())
        if only is not None:
            wanted = {ProviderId(p) for p in only}
            ordered = [p for p in ordered if p in wanted]

        candidates = [p for p in ordered if self._usable(plan, p)]
        # Tool-gated extras are not "missing configuration" when absent
        skipped = [
            p for p in ordered
            if p not in candidates and (only is not None or p in plan.providers)
        ]
        return candidates, skipped

    # --------------------------------------------------------
    # Execution
    # --------------------------------------------------------

    async def run(
        self,
        operation_id: str,
        args: Optional[Mapping[str, Any]] = None,
        *,
        only: Optional[Iterable[str]] = None,
    ) -> OperationResult[Any]:
        """
        Run ``operation_id`` with fallback.

        Args:
            operation_id: Key of the static operation table
            args: Operation arguments passed to the provider invoker
            only: Restrict to these provider ids

        Returns:
            The first successful result, NotConfigured when no provider is
            usable, or ExhaustedFallback listing every failure

        Raises:
            ValueError: Unknown operation id
            TypeError: A registered provider lacks the required capability
        """
        plan = self.get_plan(operation_id)
        call_args = dict(args or {})
        candidates, skipped = self.plan_candidates(plan, only)

        if not candidates:
            return self._not_configured(plan, skipped or list(plan.providers))

        failures = [self._skipped_error(plan, p) for p in skipped]

        for provider_id in candidates:
            provider = self._registry.get(provider_id)
            if not isinstance(provider, plan.capability):
                raise TypeError(
                    f"Provider '{provider_id.value}' does not implement "
                    f"{plan.capability.__name__} required by {operation_id}"
                )

            result = await self._call(plan, provider_id, provider, call_args)
            if result.ok:
                if provider_id == plan.degraded and not result.degraded:
                    result = dataclasses.replace(result, degraded=True)
                logger.info(f"[{provider_id.value}] {operation_id} succeeded")
                return result

            logger.info(f"[{provider_id.value}] {operation_id} failed: {result.error_message}")
            failures.append(self._with_provider(result.error, provider_id))

        error = self._exhausted(plan, failures)
        logger.debug(f"{operation_id} exhausted: {error.to_dict()}")
        return OperationResult.failure(error)

    async def _call(
        self,
        plan: OperationPlan,
        provider_id: ProviderId,
        provider: Any,
        args: dict[str, Any],
    ) -> OperationResult[Any]:
        try:
            return await asyncio.wait_for(plan.invoke(provider, args), timeout=self._timeout)
        except asyncio.TimeoutError:
            return OperationResult.provider_failure(
                provider_id.value,
                f"Request timed out after {self._timeout:g}s",
            )
        except OnchainError as e:
            return OperationResult.provider_failure(provider_id.value, e.message)

    # --------------------------------------------------------
    # Error construction
    # --------------------------------------------------------

    @staticmethod
    def _missing_env_vars(providers: Iterable[ProviderId]) -> tuple[str, ...]:
        names: list[str] = []
        for provider in providers:
            requirement = PROVIDER_REQUIREMENTS[provider]
            names.extend(requirement.env_vars or ((requirement.tool,) if requirement.tool else ()))
        return tuple(dict.fromkeys(names))

    def _not_configured(self, plan: OperationPlan, providers: list[ProviderId]) -> OperationResult[Any]:
        logger.info(f"{plan.operation_id}: no capable provider")
        return OperationResult.not_configured(
            missing_credentials_message(plan.description, providers),
            missing_credentials=self._missing_env_vars(providers),
        )

    def _skipped_error(self, plan: OperationPlan, provider_id: ProviderId) -> OperationError:
        return OperationError(
            kind=ErrorKind.NOT_CONFIGURED,
            message=missing_credentials_message(plan.description, [provider_id]),
            provider=provider_id.value,
            missing_credentials=self._missing_env_vars([provider_id]),
        )

    @staticmethod
    def _with_provider(error: Optional[OperationError], provider_id: ProviderId) -> OperationError:
        if error is None:
            return OperationError(ErrorKind.PROVIDER_FAILURE, "Unknown error", provider=provider_id.value)
        if error.provider:
            return error
        return dataclasses.replace(error, provider=provider_id.value)

    @staticmethod
    def _exhausted(plan: OperationPlan, failures: list[OperationError]) -> OperationError:
        parts = []
        for failure in failures:
            if failure.kind is ErrorKind.NOT_CONFIGURED:
                parts.append(f"{failure.provider}: not configured")
            else:
                parts.append(f"{failure.provider}: {failure.message}")
        return OperationError(
            kind=ErrorKind.EXHAUSTED_FALLBACK,
            message=f"{plan.description} failed on every provider. {'; '.join(parts)}",
            failures=tuple(failures),
        )
