"""
FairGate Exception Hierarchy

Exceptions are reserved for configuration and boundary problems.
Policy outcomes (a blocked transition, a blocked screening check) are
returned as decisions and never raised.

Exception codes follow the pattern: FG_<CATEGORY>_<SPECIFIC>
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class FairGateError(Exception):
    """
    Base exception for all FairGate errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (FG_*)
        details: Additional context about the error
        market_id: Associated market if applicable
    """
    message: str
    code: str = "FG_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    market_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.market_id:
            parts.append(f"(market: {self.market_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/CLI output."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.market_id:
            result["market_id"] = self.market_id
        return result


# =============================================================================
# Market Pack Errors
# =============================================================================

@dataclass
class PackLoadError(FairGateError):
    """Failed to read a market pack or the market index from disk."""
    code: str = "FG_PACK_LOAD_ERROR"


@dataclass
class PackValidationError(FairGateError):
    """Market pack failed schema or reference validation."""
    code: str = "FG_PACK_VALIDATION_ERROR"


@dataclass
class PackVersionMismatch(FairGateError):
    """Market pack schema version is not supported by this loader."""
    code: str = "FG_PACK_VERSION_MISMATCH"


# =============================================================================
# Registry Errors
# =============================================================================

@dataclass
class MarketNotFoundError(FairGateError):
    """Strict lookup of a market with no registered profile."""
    code: str = "FG_MARKET_NOT_FOUND"


# =============================================================================
# Boundary Errors
# =============================================================================

@dataclass
class RequestValidationError(FairGateError):
    """Request is missing a required field or names a value outside a closed set."""
    code: str = "FG_REQUEST_INVALID"


@dataclass
class SettingsError(FairGateError):
    """Environment settings could not be parsed."""
    code: str = "FG_SETTINGS_ERROR"
