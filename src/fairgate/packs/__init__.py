"""
FairGate Market Packs

Schema validation and loading for market packs.

Market packs are YAML or JSON files that define the Fair Chance Housing
workflow graph, prerequisites, restricted checks and notice obligations
for a jurisdiction. markets.yaml maps market ids onto packs.

Usage:
    from fairgate.packs import MarketPackLoader, default_packs_dir

    loader = MarketPackLoader()
    table = loader.load_directory(default_packs_dir())
    nyc = table.profiles["NYC"]
"""
from __future__ import annotations

from .loader import (
    INDEX_FILENAME,
    MarketPackLoader,
    MarketTable,
    default_packs_dir,
    load_market_pack,
    load_market_pack_from_string,
    validate_index_integrity,
    validate_reference_integrity,
)
from .schema import (
    SCHEMA_VERSION,
    FairChanceRulesSchema,
    LegacySchema,
    MarketPackSchema,
    MarketsIndexSchema,
    TransitionSchema,
    check_schema_version,
    validate_market_pack,
    validate_markets_index,
)

__all__ = [
    # Version
    "SCHEMA_VERSION",
    # Loader
    "INDEX_FILENAME",
    "MarketPackLoader",
    "MarketTable",
    "default_packs_dir",
    "load_market_pack",
    "load_market_pack_from_string",
    # Validation
    "check_schema_version",
    "validate_index_integrity",
    "validate_market_pack",
    "validate_markets_index",
    "validate_reference_integrity",
    # Schemas
    "FairChanceRulesSchema",
    "LegacySchema",
    "MarketPackSchema",
    "MarketsIndexSchema",
    "TransitionSchema",
]
