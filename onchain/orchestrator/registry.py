"""
Orchestrator - Provider Registry.

============================================================
RESPONSIBILITY
============================================================
Holds one instance per provider together with the capability flags
computed for this invocation.

- Register providers by id
- Answer "is provider X usable"
- Close every HTTP session on shutdown

============================================================
"""

import logging
import shutil
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from onchain.config.capabilities import CapabilityFlags, ProviderId, validate_credentials
from onchain.config.loader import AppConfig
from onchain.models import MarketFilter
from onchain.providers import (
    BinanceProvider,
    BrowserProvider,
    CoinbaseProvider,
    CoinGeckoProvider,
    CoinMarketCapProvider,
    DeBankProvider,
    EtherscanProvider,
    HeliusProvider,
    NansenProvider,
    PolymarketProvider,
    SolscanProvider,
    ZerionProvider,
)
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


Invoker = Callable[[Any, dict[str, Any]], Awaitable[OperationResult[Any]]]


# ============================================================
# OPERATION PLAN
# ============================================================

@dataclass(frozen=True)
class OperationPlan:
    """
    Static fallback plan for one logical operation.

    ``providers`` is the ordinary ordered list. ``preferred`` is tried
    before it and ``degraded`` after it; both are tool-gated.
    ``default_provider`` needs no credentials and is always a candidate.
    """
    operation_id: str
    description: str
    capability: type
    invoke: Invoker
    providers: tuple[ProviderId, ...]
    preferred: Optional[ProviderId] = None
    default_provider: Optional[ProviderId] = None
    degraded: Optional[ProviderId] = None

    def all_providers(self) -> tuple[ProviderId, ...]:
        ordered = [self.preferred] if self.preferred else []
        ordered.extend(self.providers)
        if self.degraded:
            ordered.append(self.degraded)
        return tuple(ordered)


# ============================================================
# PROVIDER REGISTRY
# ============================================================

class ProviderRegistry:
    """
    Provider instances plus capability flags.

    Usage:
        registry = ProviderRegistry(validate_credentials(creds))
        registry.register(ZerionProvider(api_key))
        registry.is_capable(ProviderId.ZERION)
    """

    def __init__(self, capabilities: CapabilityFlags) -> None:
        self._capabilities = capabilities
        self._providers: dict[ProviderId, Any] = {}

    @property
    def capabilities(self) -> CapabilityFlags:
        return self._capabilities

    def register(self, provider: Any, provider_id: Optional[ProviderId] = None) -> None:
        """
        Register a provider.

        Args:
            provider: Any object implementing one or more capability protocols
            provider_id: Defaults to ``provider.provider_id``
        """
        key = ProviderId(provider_id or provider.provider_id)
        if key in self._providers:
            logger.warning(f"Provider '{key.value}' already registered, replacing")
        self._providers[key] = provider
        logger.debug(f"Registered provider '{key.value}'")

    def get(self, provider_id: ProviderId) -> Optional[Any]:
        return self._providers.get(ProviderId(provider_id))

    def is_capable(self, provider_id: ProviderId) -> bool:
        """Usable only when registered and its capability flag is set."""
        return ProviderId(provider_id) in self._providers and self._capabilities.is_capable(provider_id)

    def list_providers(self) -> list[str]:
        return [p.value for p in self._providers]

    async def close(self) -> None:
        for provider in self._providers.values():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()


def build_provider_registry(
    config: AppConfig,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> ProviderRegistry:
    """Instantiate every provider from ``config`` and compute capabilities."""
    creds = config.credentials
    timeout = config.timeout_seconds

    registry = ProviderRegistry(validate_credentials(creds, which))
    registry.register(NansenProvider(timeout=timeout, which=which))
    registry.register(ZerionProvider(creds.get("zerion_api_key"), timeout=timeout))
    registry.register(DeBankProvider(creds.get("debank_api_key"), timeout=timeout))
    registry.register(HeliusProvider(creds.get("helius_api_key"), timeout=timeout))
    registry.register(BrowserProvider(timeout=timeout, which=which))
    registry.register(EtherscanProvider(creds.get("etherscan_api_key"), timeout=timeout))
    registry.register(SolscanProvider(creds.get("solscan_api_key"), timeout=timeout))
    registry.register(CoinGeckoProvider(creds.get("coingecko_api_key"), timeout=timeout))
    registry.register(CoinMarketCapProvider(creds.get("coinmarketcap_api_key"), timeout=timeout))
    registry.register(BinanceProvider(
        creds.get("binance_api_key"),
        creds.get("binance_api_secret"),
        timeout=timeout,
    ))
    registry.register(CoinbaseProvider(
        creds.get("coinbase_api_key_id"),
        creds.get("coinbase_api_key_secret"),
        timeout=timeout,
    ))
    registry.register(PolymarketProvider(
        timeout=timeout,
        default_filter=MarketFilter(
            include_tags=config.polymarket_include_tags,
            exclude_tags=config.polymarket_exclude_tags,
        ),
    ))

    capable = [p.value for p in registry.capabilities.capable_providers()]
    logger.info(f"Capable providers: {', '.join(capable) or 'none'}")
    return registry
