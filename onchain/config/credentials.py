"""
Credential Resolver.

Merges the process environment with the global and local config files.
Precedence: environment > local file > global file. An empty string counts
as absent at every layer, so it never shadows a lower-precedence value.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class CredentialField:
    """One named secret and where it can come from."""
    name: str
    env_var: str

    @property
    def alias(self) -> str:
        """camelCase spelling accepted in config files."""
        head, *rest = self.name.split("_")
        return head + "".join(part.capitalize() for part in rest)


CREDENTIAL_FIELDS: tuple[CredentialField, ...] = (
    CredentialField("debank_api_key", "DEBANK_API_KEY"),
    CredentialField("helius_api_key", "HELIUS_API_KEY"),
    CredentialField("zerion_api_key", "ZERION_API_KEY"),
    CredentialField("etherscan_api_key", "ETHERSCAN_API_KEY"),
    CredentialField("solscan_api_key", "SOLSCAN_API_KEY"),
    CredentialField("coingecko_api_key", "COINGECKO_API_KEY"),
    CredentialField("coinmarketcap_api_key", "COINMARKETCAP_API_KEY"),
    CredentialField("binance_api_key", "BINANCE_API_KEY"),
    CredentialField("binance_api_secret", "BINANCE_API_SECRET"),
    CredentialField("coinbase_api_key_id", "COINBASE_API_KEY_ID"),
    CredentialField("coinbase_api_key_secret", "COINBASE_API_KEY_SECRET"),
)

CREDENTIAL_NAMES = frozenset(f.name for f in CREDENTIAL_FIELDS)
ENV_VARS_BY_NAME = {f.name: f.env_var for f in CREDENTIAL_FIELDS}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def normalize_config_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite camelCase keys (``debankApiKey``) to snake_case, recursively."""
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, Mapping):
            value = normalize_config_keys(value)
        normalized[to_snake_case(str(key))] = value
    return normalized


def _present(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text != "" else None


@dataclass(frozen=True)
class CredentialSet:
    """Merged credentials for one invocation."""
    values: Mapping[str, str] = field(default_factory=dict)
    origins: Mapping[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[str]:
        if name not in CREDENTIAL_NAMES:
            raise KeyError(f"Unknown credential: {name}")
        return self.values.get(name)

    def has(self, name: str) -> bool:
        return bool(self.get(name))

    def origin(self, name: str) -> Optional[str]:
        """``env``, ``local``, ``global`` or None when unset."""
        return self.origins.get(name)

    def __getattr__(self, name: str) -> Optional[str]:
        if name in CREDENTIAL_NAMES:
            return self.values.get(name)
        raise AttributeError(name)


def resolve_credentials(
    env: Mapping[str, str],
    global_config: Mapping[str, Any],
    local_config: Mapping[str, Any],
) -> CredentialSet:
    """
    Merge the three credential sources.

    Pure function: no file or environment access happens here. Config
    mappings may use either snake_case or camelCase keys.
    """
    global_cfg = normalize_config_keys(global_config)
    local_cfg = normalize_config_keys(local_config)

    values: dict[str, str] = {}
    origins: dict[str, str] = {}

    for cred in CREDENTIAL_FIELDS:
        for origin, source, key in (
            ("env", env, cred.env_var),
            ("local", local_cfg, cred.name),
            ("global", global_cfg, cred.name),
        ):
            value = _present(source.get(key))
            if value is not None:
                values[cred.name] = value
                origins[cred.name] = origin
                break

    return CredentialSet(values=values, origins=origins)
