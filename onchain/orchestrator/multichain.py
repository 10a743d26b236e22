"""
Multi-chain transaction resolver.

Tries EVM chains one at a time through the ``tx.evm`` operation until the
hash is found. An explicit chain means exactly one call.
"""

import dataclasses
import logging
from typing import Optional, Sequence

from onchain.models import TransactionDetail
from onchain.orchestrator.core import Orchestrator
from onchain.results import ErrorKind, OperationError, OperationResult


logger = logging.getLogger(__name__)


# Most-used chain first
DEFAULT_CHAIN_ORDER: tuple[str, ...] = (
    "ethereum",
    "arbitrum",
    "base",
    "polygon",
    "optimism",
    "bsc",
    "avalanche",
    "fantom",
)


class MultiChainResolver:

    OPERATION_ID = "tx.evm"

    def __init__(self, orchestrator: Orchestrator) -> None:
        self._orchestrator = orchestrator

    async def find_transaction(
        self,
        tx_hash: str,
        preferred_order: Optional[Sequence[str]] = None,
        chain: Optional[str] = None,
    ) -> OperationResult[TransactionDetail]:
        """
        Locate ``tx_hash`` on the first chain that knows it.

        Args:
            tx_hash: 0x-prefixed transaction hash
            preferred_order: Chain order override
            chain: Explicit chain; skips the chain search

        Returns:
            Success annotated with ``chain`` and ``tried_chains``, or a
            failure whose ``tried_chains`` lists every chain attempted
        """
        if chain:
            result = await self._lookup(tx_hash, chain)
            if result.ok:
                return result.with_chain(chain, (chain,))
            return dataclasses.replace(result, tried_chains=(chain,))

        tried: list[str] = []
        failures: list[OperationError] = []
        for candidate in preferred_order or DEFAULT_CHAIN_ORDER:
            tried.append(candidate)
            result = await self._lookup(tx_hash, candidate)

            if result.ok:
                logger.info(f"Found {tx_hash} on {candidate} after {len(tried)} attempt(s)")
                return result.with_chain(candidate, tuple(tried))

            # Missing explorer key fails the same way on every chain
            if result.error.kind is ErrorKind.NOT_CONFIGURED:
                return result

            logger.debug(f"{tx_hash} not on {candidate}: {result.error_message}")
            failures.append(result.error)

        return OperationResult.failure(OperationError(
            kind=ErrorKind.EXHAUSTED_FALLBACK,
            message=f"Transaction not found on any chain. Tried: {', '.join(tried)}",
            failures=tuple(failures),
            tried_chains=tuple(tried),
        ))

    async def _lookup(self, tx_hash: str, chain: str) -> OperationResult[TransactionDetail]:
        return await self._orchestrator.run(self.OPERATION_ID, {"hash": tx_hash, "chain": chain})
