"""
FairGate Settings

Runtime configuration read from FAIRGATE_* environment variables.

    FAIRGATE_PACKS_DIR            Directory with market packs and markets.yaml
                                  (default: packs shipped with the package)
    FAIRGATE_UNKNOWN_MARKET_MODE  fail_open | fail_closed (default: fail_open)
    FAIRGATE_LOG_LEVEL            DEBUG | INFO | WARNING | ERROR (default: INFO)
    FAIRGATE_LOG_JSON             true | false (default: true)
    FAIRGATE_STRICT_SCHEMA        true | false, reject packs with another
                                  schema major version (default: true)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .engine import PolicyRegistry
from .exceptions import SettingsError
from .models import UnknownMarketMode
from .packs import default_packs_dir


logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise SettingsError(
        message=f"{name} must be a boolean, got {value!r}",
        details={"variable": name, "value": value},
    )


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""
    packs_dir: Path
    unknown_market_mode: UnknownMarketMode = UnknownMarketMode.FAIL_OPEN
    log_level: str = "INFO"
    log_json: bool = True
    strict_schema: bool = True


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings from the environment (or the mapping given).

    Raises:
        SettingsError: If a variable holds a value outside its allowed set
    """
    env = os.environ if environ is None else environ

    packs_dir = env.get("FAIRGATE_PACKS_DIR")

    mode_value = env.get("FAIRGATE_UNKNOWN_MARKET_MODE", UnknownMarketMode.FAIL_OPEN.value)
    try:
        mode = UnknownMarketMode(mode_value.strip().lower())
    except ValueError:
        raise SettingsError(
            message=f"FAIRGATE_UNKNOWN_MARKET_MODE must be fail_open or fail_closed, "
                    f"got {mode_value!r}",
            details={"variable": "FAIRGATE_UNKNOWN_MARKET_MODE", "value": mode_value},
        )

    log_level = env.get("FAIRGATE_LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        raise SettingsError(
            message=f"FAIRGATE_LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}",
            details={"variable": "FAIRGATE_LOG_LEVEL", "value": log_level},
        )

    return Settings(
        packs_dir=Path(packs_dir) if packs_dir else default_packs_dir(),
        unknown_market_mode=mode,
        log_level=log_level,
        log_json=_parse_bool("FAIRGATE_LOG_JSON", env.get("FAIRGATE_LOG_JSON", "true")),
        strict_schema=_parse_bool(
            "FAIRGATE_STRICT_SCHEMA", env.get("FAIRGATE_STRICT_SCHEMA", "true")
        ),
    )


def build_registry(settings: Optional[Settings] = None) -> PolicyRegistry:
    """Load the registry described by settings (environment when omitted)."""
    settings = settings or load_settings()
    registry = PolicyRegistry.from_directory(
        settings.packs_dir,
        unknown_market_mode=settings.unknown_market_mode,
        strict_version=settings.strict_schema,
    )
    logger.info(
        "Policy registry ready: %d market(s) from %s, unknown markets %s",
        len(registry), settings.packs_dir, settings.unknown_market_mode.value,
    )
    return registry
