"""
Configuration - credentials, config files and provider capabilities.

Read once per invocation into immutable structures.
"""

from onchain.config.capabilities import (
    PROVIDER_REQUIREMENTS,
    CapabilityFlags,
    ProviderId,
    ProviderRequirement,
    missing_credentials_message,
    validate_credentials,
)
from onchain.config.credentials import (
    CREDENTIAL_FIELDS,
    CredentialField,
    CredentialSet,
    normalize_config_keys,
    resolve_credentials,
)
from onchain.config.loader import (
    AppConfig,
    get_config_path,
    get_global_config_path,
    get_local_config_path,
    read_config_file,
    save_config,
    set_config_value,
)

__all__ = [
    "PROVIDER_REQUIREMENTS",
    "CapabilityFlags",
    "ProviderId",
    "ProviderRequirement",
    "missing_credentials_message",
    "validate_credentials",
    "CREDENTIAL_FIELDS",
    "CredentialField",
    "CredentialSet",
    "normalize_config_keys",
    "resolve_credentials",
    "AppConfig",
    "get_config_path",
    "get_global_config_path",
    "get_local_config_path",
    "read_config_file",
    "save_config",
    "set_config_value",
]
