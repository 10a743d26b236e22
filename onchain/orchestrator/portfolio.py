"""
Portfolio overview - tokens, DeFi positions and NFTs for one wallet.

============================================================
RESPONSIBILITY
============================================================
Runs the per-section operations through the orchestrator and merges
what succeeded into one PortfolioOverview.

- Token balances: ``balances.<chain type>``
- DeFi positions: ``defi.evm`` (EVM wallets only)
- NFTs: ``nfts.<chain type>``

A failed section is left empty and its message recorded; the overview
fails only when every section failed.
============================================================
"""

import asyncio
import logging
from typing import Any

from onchain.models import ChainType, PortfolioOverview
from onchain.orchestrator.core import Orchestrator
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


class PortfolioBuilder:
    """
    Usage:
        builder = PortfolioBuilder(orchestrator)
        result = await builder.build(address, ChainType.EVM)
    """

    def __init__(self, orchestrator: Orchestrator) -> None:
        self._orchestrator = orchestrator

    @staticmethod
    def sections(chain_type: ChainType) -> dict[str, str]:
        """Section name -> operation id, in display order."""
        sections = {"tokens": f"balances.{chain_type.value}"}
        if chain_type is ChainType.EVM:
            sections["defi"] = "defi.evm"
        sections["nfts"] = f"nfts.{chain_type.value}"
        return sections

    async def build(self, address: str, chain_type: ChainType) -> OperationResult[PortfolioOverview]:
        sections = self.sections(chain_type)
        results = await asyncio.gather(*(
            self._orchestrator.run(operation_id, {"address": address})
            for operation_id in sections.values()
        ))
        by_section: dict[str, OperationResult[Any]] = dict(zip(sections, results))

        payloads: dict[str, Any] = {}
        sources: list[tuple[str, str]] = []
        errors: list[tuple[str, str]] = []
        for name, result in by_section.items():
            if result.ok:
                payloads[name] = result.payload
                sources.append((name, result.source))
            else:
                logger.info(f"Portfolio {name} unavailable: {result.error_message}")
                errors.append((name, result.error_message or "Unknown error"))

        if not payloads:
            return by_section["tokens"]

        tokens = by_section["tokens"]
        overview = PortfolioOverview(
            address=address,
            chain_type=chain_type,
            tokens=payloads.get("tokens"),
            defi=payloads.get("defi"),
            nfts=payloads.get("nfts"),
            sources=tuple(sources),
            errors=tuple(errors),
        )
        return OperationResult.success(
            overview,
            source=sources[0][1],
            degraded=tokens.ok and tokens.degraded,
        )
