"""
Config file loading and saving.

Global file: ~/.config/onchain/config.yaml
Local file:  ./.onchainrc.yaml (overrides global)

Both are YAML (JSON content parses too). A file that cannot be read or
parsed produces a warning and is treated as empty.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import load_dotenv

from onchain.config.credentials import (
    CREDENTIAL_NAMES,
    CredentialSet,
    normalize_config_keys,
    resolve_credentials,
    to_snake_case,
)
from onchain.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 30.0

SETTABLE_KEYS = frozenset(CREDENTIAL_NAMES | {
    "timeout_seconds",
    "polymarket.exclude_tags",
    "polymarket.include_tags",
})


def get_global_config_path() -> Path:
    return Path.home() / ".config" / "onchain" / "config.yaml"


def get_local_config_path() -> Path:
    return Path.cwd() / ".onchainrc.yaml"


def get_config_path(global_: bool = False) -> Path:
    return get_global_config_path() if global_ else get_local_config_path()


def read_config_file(path: Path, warnings: Optional[list[str]] = None) -> dict[str, Any]:
    """
    Read one config file.

    Args:
        path: File to read; a missing file is simply empty
        warnings: Collected non-fatal problems are appended here

    Returns:
        Mapping with snake_case keys
    """
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        message = f"Failed to parse config at {path}: {e}"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        message = f"Ignoring config at {path}: expected a mapping, got {type(data).__name__}"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)
        return {}

    return normalize_config_keys(data)


def _tag_list(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if not isinstance(value, (list, tuple)):
        value = str(value).split(",")
    return tuple(str(tag).strip().lower() for tag in value if str(tag).strip())


def _section(cfg: Mapping[str, Any], name: str, path: Path, warnings: list[str]) -> dict[str, Any]:
    """Nested mapping ``name`` from one file; anything else is ignored with a warning."""
    value = cfg.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        message = f"Ignoring {name} in {path}: expected a mapping, got {type(value).__name__}"
        logger.warning(message)
        warnings.append(message)
        return {}
    return value


def _timeout_from(merged: Mapping[str, Any]) -> float:
    """
    Raises:
        ValueError: Not a number, or not positive
    """
    if merged.get("timeout_seconds") is not None:
        seconds = float(merged["timeout_seconds"])
    elif merged.get("timeout_ms") is not None:
        seconds = float(merged["timeout_ms"]) / 1000.0
    else:
        return DEFAULT_TIMEOUT_SECONDS
    if seconds <= 0:
        raise ValueError(f"timeout must be positive, got {seconds:g}s")
    return seconds


@dataclass(frozen=True)
class AppConfig:
    """Everything one invocation reads from disk and the environment."""
    credentials: CredentialSet = field(default_factory=CredentialSet)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    polymarket_exclude_tags: tuple[str, ...] = ()
    polymarket_include_tags: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    global_path: Optional[Path] = None
    local_path: Optional[Path] = None

    @classmethod
    def load(
        cls,
        env: Optional[Mapping[str, str]] = None,
        global_path: Optional[Path] = None,
        local_path: Optional[Path] = None,
    ) -> "AppConfig":
        """
        Load config files and resolve credentials.

        When ``env`` is None the process environment is used, after
        ``.env`` in the working directory has been loaded without
        overriding variables that are already set.
        """
        if env is None:
            load_dotenv(override=False)
            env = dict(os.environ)

        global_path = global_path or get_global_config_path()
        local_path = local_path or get_local_config_path()

        warnings: list[str] = []
        global_cfg = read_config_file(global_path, warnings)
        local_cfg = read_config_file(local_path, warnings)

        merged = {**global_cfg, **local_cfg}
        polymarket = {
            **_section(global_cfg, "polymarket", global_path, warnings),
            **_section(local_cfg, "polymarket", local_path, warnings),
        }

        try:
            timeout = _timeout_from(merged)
        except (TypeError, ValueError) as e:
            message = f"Invalid timeout in config ({e}), using {DEFAULT_TIMEOUT_SECONDS:g}s"
            logger.warning(message)
            warnings.append(message)
            timeout = DEFAULT_TIMEOUT_SECONDS

        return cls(
            credentials=resolve_credentials(env, global_cfg, local_cfg),
            timeout_seconds=timeout,
            polymarket_exclude_tags=_tag_list(polymarket.get("exclude_tags")),
            polymarket_include_tags=_tag_list(polymarket.get("include_tags")),
            warnings=tuple(warnings),
            global_path=global_path,
            local_path=local_path,
        )

    def with_timeout(self, timeout_seconds: Optional[float]) -> "AppConfig":
        """Copy with the CLI ``--timeout`` override applied."""
        if timeout_seconds is None:
            return self
        return AppConfig(
            credentials=self.credentials,
            timeout_seconds=timeout_seconds,
            polymarket_exclude_tags=self.polymarket_exclude_tags,
            polymarket_include_tags=self.polymarket_include_tags,
            warnings=self.warnings,
            global_path=self.global_path,
            local_path=self.local_path,
        )


def save_config(updates: Mapping[str, Any], path: Path) -> Path:
    """Merge ``updates`` into the YAML file at ``path`` and write it back."""
    path.parent.mkdir(parents=True, exist_ok=True)

    existing = read_config_file(path)
    for key, value in normalize_config_keys(updates).items():
        if isinstance(value, dict) and isinstance(existing.get(key), dict):
            existing[key] = {**existing[key], **value}
        else:
            existing[key] = value

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(existing, f, sort_keys=False, default_flow_style=False)

    logger.info(f"Saved config to {path}")
    return path


def set_config_value(key: str, value: str, path: Path) -> Path:
    """
    Set one config key from the command line.

    ``key`` may be snake_case, camelCase, or dotted for nested keys
    (``polymarket.exclude_tags``). Tag lists are comma separated.

    Raises:
        ConfigurationError: Unknown key or a value of the wrong type
    """
    normalized = ".".join(to_snake_case(part) for part in key.split("."))
    if normalized not in SETTABLE_KEYS:
        raise ConfigurationError(
            f"Unknown config key: {key}. Valid keys: {', '.join(sorted(SETTABLE_KEYS))}",
            config_key=key,
        )

    if normalized == "timeout_seconds":
        try:
            seconds = float(value)
        except ValueError:
            raise ConfigurationError(
                f"timeout_seconds must be a number, got {value!r}",
                config_key=key,
            ) from None
        if seconds <= 0:
            raise ConfigurationError("timeout_seconds must be positive", config_key=key)
        return save_config({"timeout_seconds": seconds}, path)

    if normalized.startswith("polymarket."):
        section, name = normalized.split(".", 1)
        return save_config({section: {name: list(_tag_list(value))}}, path)

    return save_config({normalized: value}, path)
