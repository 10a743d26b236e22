"""
Provider health checks.

============================================================
RESPONSIBILITY
============================================================
Runs one cheap, read-only request per registered provider and reports
whether it answered.

- Unconfigured providers are skipped, not failed
- Each check is pinned to its provider (no fallback)
- The report counts passed, failed and skipped checks

============================================================
HEALTH STATES
============================================================
- OK: provider answered
- SKIP: provider not configured, or has no check
- FAIL: provider configured but the request failed

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from onchain.config.capabilities import ProviderId
from onchain.orchestrator.core import Orchestrator


logger = logging.getLogger(__name__)


# Public, long-lived wallets with activity
TEST_EVM_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
TEST_SOLANA_ADDRESS = "86xCnPeV69n6t3DnyGvkKobf9FdN2H9oiVDdaMpo2MMY"


class CheckStatus(str, Enum):
    OK = "ok"
    SKIP = "skip"
    FAIL = "fail"


@dataclass(frozen=True)
class ProviderCheck:
    provider: str
    status: CheckStatus
    message: str
    duration_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"provider": self.provider, "status": self.status.value, "message": self.message}
        if self.duration_ms is not None:
            data["duration_ms"] = self.duration_ms
        return data


@dataclass(frozen=True)
class HealthReport:
    results: tuple[ProviderCheck, ...] = field(default_factory=tuple)

    def count(self, status: CheckStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def failed(self) -> bool:
        return self.count(CheckStatus.FAIL) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": {
                "passed": self.count(CheckStatus.OK),
                "failed": self.count(CheckStatus.FAIL),
                "skipped": self.count(CheckStatus.SKIP),
            },
        }


# ============================================================
# CHECK TABLE
# ============================================================

def _describe_price(payload: Any) -> str:
    return f"{payload.symbol} price: ${payload.price_usd:,.2f}"


def _describe_balances(payload: Any) -> str:
    return f"Found {len(payload.balances)} tokens, total: ${payload.total_value_usd:,.2f}"


def _describe_exchange(payload: Any) -> str:
    return f"Found {len(payload.balances)} assets, total: ${payload.total_value_usd:,.2f}"


def _describe_gas(payload: Any) -> str:
    return f"Gas on {payload.chain}: {payload.propose_gwei:g} gwei"


def _describe_markets(payload: Any) -> str:
    return f"Found {len(payload.markets)} trending markets"


@dataclass(frozen=True)
class Check:
    operation_id: str
    args: dict[str, Any]
    describe: Callable[[Any], str]


_EVM_BALANCES = Check("balances.evm", {"address": TEST_EVM_ADDRESS}, _describe_balances)

CHECKS: dict[ProviderId, Check] = {
    ProviderId.NANSEN: _EVM_BALANCES,
    ProviderId.ZERION: _EVM_BALANCES,
    ProviderId.DEBANK: _EVM_BALANCES,
    ProviderId.HELIUS: Check("balances.solana", {"address": TEST_SOLANA_ADDRESS}, _describe_balances),
    ProviderId.BROWSER: _EVM_BALANCES,
    ProviderId.ETHERSCAN: Check("gas.estimate", {"chain": "ethereum"}, _describe_gas),
    ProviderId.COINGECKO: Check("price.token", {"token": "bitcoin"}, _describe_price),
    ProviderId.COINMARKETCAP: Check("price.token", {"token": "BTC"}, _describe_price),
    ProviderId.BINANCE: Check("cex.binance.balances", {}, _describe_exchange),
    ProviderId.COINBASE: Check("cex.coinbase.balances", {}, _describe_exchange),
    ProviderId.POLYMARKET: Check("markets.trending", {"limit": 3}, _describe_markets),
}


# ============================================================
# RUNNER
# ============================================================

async def check_provider(orchestrator: Orchestrator, provider_id: ProviderId) -> ProviderCheck:
    """Run the check for one provider, pinned to that provider."""
    if not orchestrator.registry.is_capable(provider_id):
        return ProviderCheck(provider_id.value, CheckStatus.SKIP, "Not configured")

    check = CHECKS.get(provider_id)
    if check is None:
        return ProviderCheck(provider_id.value, CheckStatus.SKIP, "No check available")

    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await orchestrator.run(check.operation_id, check.args, only=[provider_id.value])
    duration_ms = int((loop.time() - started) * 1000)

    if result.ok:
        return ProviderCheck(provider_id.value, CheckStatus.OK, check.describe(result.payload), duration_ms)

    logger.warning(f"[{provider_id.value}] health check failed: {result.error_message}")
    return ProviderCheck(provider_id.value, CheckStatus.FAIL, result.error_message or "Unknown error", duration_ms)


async def run_provider_checks(orchestrator: Orchestrator) -> HealthReport:
    """Check every registered provider in registration order."""
    results = []
    for provider in orchestrator.registry.list_providers():
        results.append(await check_provider(orchestrator, ProviderId(provider)))
    return HealthReport(results=tuple(results))
