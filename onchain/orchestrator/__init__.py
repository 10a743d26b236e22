"""
Orchestrator Package - provider selection and fallback.

============================================================
PACKAGE OVERVIEW
============================================================
Decides which providers may answer an operation, calls them in order and
returns the first success or an aggregate failure.

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                     Orchestrator                    |
    |-----------------------------------------------------|
    |  ProviderRegistry   |  instances + capability flags |
    |  OperationPlan      |  static ordered provider list |
    |  MultiChainResolver |  search EVM chains for a hash |
    |  PortfolioBuilder   |  tokens + DeFi + NFTs         |
    |  run_provider_checks|  one live check per provider  |
    +-----------------------------------------------------+

============================================================
"""

from onchain.orchestrator.core import Orchestrator
from onchain.orchestrator.health import CheckStatus, HealthReport, ProviderCheck, run_provider_checks
from onchain.orchestrator.multichain import DEFAULT_CHAIN_ORDER, MultiChainResolver
from onchain.orchestrator.operations import DEFAULT_OPERATIONS
from onchain.orchestrator.portfolio import PortfolioBuilder
from onchain.orchestrator.registry import (
    OperationPlan,
    ProviderRegistry,
    build_provider_registry,
)

__all__ = [
    "Orchestrator",
    "DEFAULT_CHAIN_ORDER",
    "MultiChainResolver",
    "DEFAULT_OPERATIONS",
    "PortfolioBuilder",
    "CheckStatus",
    "HealthReport",
    "ProviderCheck",
    "run_provider_checks",
    "OperationPlan",
    "ProviderRegistry",
    "build_provider_registry",
]
