"""
Secret masking for display and logs.

============================================================
RULES
============================================================
1. NEVER log raw API keys or secrets
2. Mask credential values in `config show`
3. Mask query parameters that carry keys before logging a URL

============================================================
"""

from typing import Any, Mapping


SENSITIVE_KEYS = {
    "apikey",
    "api-key",
    "api_key",
    "accesskey",
    "token",
    "x-mbx-apikey",
    "x-cmc_pro_api_key",
    "x-cg-pro-api-key",
    "authorization",
    "signature",
}


def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to keep at the start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with values under sensitive keys masked."""
    masked: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS and value:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked
