"""
Capability Validator.

Derives one "usable" flag per provider from the merged credentials and from
the presence of the external CLI tools some providers drive.
"""

import shutil
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional

from onchain.config.credentials import ENV_VARS_BY_NAME, CredentialSet


class ProviderId(str, Enum):
    """Every external data source."""
    NANSEN = "nansen"
    ZERION = "zerion"
    DEBANK = "debank"
    HELIUS = "helius"
    BROWSER = "browser"
    ETHERSCAN = "etherscan"
    SOLSCAN = "solscan"
    COINGECKO = "coingecko"
    COINMARKETCAP = "coinmarketcap"
    BINANCE = "binance"
    COINBASE = "coinbase"
    POLYMARKET = "polymarket"


@dataclass(frozen=True)
class ProviderRequirement:
    """
    What a provider needs to be usable.

    ``credentials`` must all be non-empty. ``optional`` credentials only
    select a tier. ``tool`` must be found on PATH.
    """
    provider: ProviderId
    credentials: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    tool: Optional[str] = None

    @property
    def env_vars(self) -> tuple[str, ...]:
        return tuple(ENV_VARS_BY_NAME[name] for name in self.credentials)

    def describe_missing(self) -> str:
        """Human spelling of what has to be set, e.g. ``A and B``."""
        if self.tool:
            return f"the `{self.tool}` CLI"
        return " and ".join(self.env_vars)


PROVIDER_REQUIREMENTS: dict[ProviderId, ProviderRequirement] = {
    ProviderId.NANSEN: ProviderRequirement(ProviderId.NANSEN, tool="nansen"),
    ProviderId.ZERION: ProviderRequirement(ProviderId.ZERION, ("zerion_api_key",)),
    ProviderId.DEBANK: ProviderRequirement(ProviderId.DEBANK, ("debank_api_key",)),
    ProviderId.HELIUS: ProviderRequirement(ProviderId.HELIUS, ("helius_api_key",)),
    ProviderId.BROWSER: ProviderRequirement(ProviderId.BROWSER, tool="agent-browser"),
    ProviderId.ETHERSCAN: ProviderRequirement(ProviderId.ETHERSCAN, ("etherscan_api_key",)),
    ProviderId.SOLSCAN: ProviderRequirement(ProviderId.SOLSCAN, ("solscan_api_key",)),
    ProviderId.COINGECKO: ProviderRequirement(
        ProviderId.COINGECKO, optional=("coingecko_api_key",)
    ),
    ProviderId.COINMARKETCAP: ProviderRequirement(
        ProviderId.COINMARKETCAP, ("coinmarketcap_api_key",)
    ),
    ProviderId.BINANCE: ProviderRequirement(
        ProviderId.BINANCE, ("binance_api_key", "binance_api_secret")
    ),
    ProviderId.COINBASE: ProviderRequirement(
        ProviderId.COINBASE, ("coinbase_api_key_id", "coinbase_api_key_secret")
    ),
    ProviderId.POLYMARKET: ProviderRequirement(ProviderId.POLYMARKET),
}


@dataclass(frozen=True)
class CapabilityFlags:
    """provider -> usable, computed once per invocation."""
    flags: Mapping[ProviderId, bool] = field(default_factory=dict)

    def is_capable(self, provider: ProviderId) -> bool:
        return self.flags.get(ProviderId(provider), False)

    def capable_providers(self) -> list[ProviderId]:
        return [p for p, ok in self.flags.items() if ok]

    def to_dict(self) -> dict[str, bool]:
        return {p.value: ok for p, ok in self.flags.items()}


def validate_credentials(
    creds: CredentialSet,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> CapabilityFlags:
    """
    Compute capability flags.

    Args:
        creds: Merged credentials
        which: PATH lookup for tool-gated providers (injectable for tests)

    Returns:
        CapabilityFlags with one entry per known provider
    """
    flags: dict[ProviderId, bool] = {}
    for provider, requirement in PROVIDER_REQUIREMENTS.items():
        if requirement.tool:
            flags[provider] = which(requirement.tool) is not None
        else:
            flags[provider] = all(creds.has(name) for name in requirement.credentials)
    return CapabilityFlags(flags=flags)


def missing_credentials_message(feature: str, providers: Iterable[ProviderId]) -> str:
    """``<feature> requires: <ENV VARS>. Run `onchain config set` ...``"""
    needed = [PROVIDER_REQUIREMENTS[ProviderId(p)].describe_missing() for p in providers]
    return (
        f"{feature} requires: {', '.join(needed)}. "
        "Run `onchain config set` or set environment variables."
    )
