"""
FairGate Market Pack Loader

Loads and validates market packs from YAML or JSON files.

Converts Pydantic schema models to MarketPolicyProfile domain models,
one profile per market listed in the markets index.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from ..canon import compute_pack_hash
from ..exceptions import PackLoadError, PackValidationError, PackVersionMismatch
from ..models import (
    CheckClassification,
    CheckType,
    LegacyStage,
    MarketPolicyProfile,
    NoticeConfig,
    NoticeType,
    WorkflowState,
)
from .schema import (
    SCHEMA_VERSION,
    MarketPackSchema,
    MarketsIndexSchema,
    TransitionSchema,
    check_schema_version,
    validate_market_pack,
    validate_markets_index,
)


logger = logging.getLogger(__name__)

INDEX_FILENAME = "markets.yaml"
PACK_SUFFIXES = {".yaml", ".yml", ".json"}


# =============================================================================
# Reference Integrity Validation
# =============================================================================

def validate_reference_integrity(pack: MarketPackSchema, path: str = "") -> None:
    """
    Validate internal references of an enabled pack are consistent.

    Catches:
    - Duplicate transition edges
    - An unlock state that no transition reaches
    - Legacy stages mapped to states outside the graph

    Raises:
        ValueError: If reference integrity errors are found
    """
    rules = pack.fcha
    if not rules.enabled:
        return

    errors = []

    seen_edges: set[tuple[str, str]] = set()
    states: set[str] = {"PREQUALIFICATION"}
    for t in rules.transitions:
        edge = (t.from_state, t.to_state)
        if edge in seen_edges:
            errors.append(f"Duplicate transition: {t.from_state} -> {t.to_state}")
        seen_edges.add(edge)
        states.update(edge)

    if rules.restricted_unlock_state and rules.restricted_unlock_state not in states:
        errors.append(
            f"Unlock state '{rules.restricted_unlock_state}' is not reachable in the graph"
        )

    if rules.legacy:
        for stage, state in rules.legacy.stage_map.items():
            if state not in states:
                errors.append(f"Legacy stage '{stage}' maps to unreachable state '{state}'")

    if errors:
        path_str = f" in {path}" if path else ""
        raise ValueError(
            f"Reference integrity errors{path_str}:\n" +
            "\n".join(f"  - {e}" for e in errors)
        )


def validate_index_integrity(index: MarketsIndexSchema, pack_ids: set[str]) -> None:
    """Every market, and the default, must name a loaded pack."""
    errors = []
    if index.default_pack not in pack_ids:
        errors.append(f"Default pack '{index.default_pack}' was not loaded")
    for market_id, pack_id in sorted(index.markets.items()):
        if pack_id not in pack_ids:
            errors.append(f"Market '{market_id}' references unknown pack '{pack_id}'")
    if errors:
        raise ValueError(
            "Markets index errors:\n" + "\n".join(f"  - {e}" for e in errors)
        )


# =============================================================================
# Schema to Model Converters
# =============================================================================

def _edge(schema: TransitionSchema) -> tuple[WorkflowState, WorkflowState]:
    return WorkflowState(schema.from_state), WorkflowState(schema.to_state)


def _convert_graph(pack: MarketPackSchema) -> dict[WorkflowState, frozenset[WorkflowState]]:
    graph: dict[WorkflowState, set[WorkflowState]] = {}
    for t in pack.fcha.transitions:
        source, target = _edge(t)
        graph.setdefault(source, set()).add(target)
    return {source: frozenset(targets) for source, targets in graph.items()}


def _convert_notice_config(pack: MarketPackSchema) -> dict[tuple[WorkflowState, WorkflowState], NoticeConfig]:
    config = {}
    for t in pack.fcha.transitions:
        if t.notices or t.opens_response_window:
            config[_edge(t)] = NoticeConfig(
                notices=tuple(NoticeType(n) for n in t.notices),
                opens_response_window=t.opens_response_window,
            )
    return config


def _convert_profile(
    pack: MarketPackSchema,
    market_id: str,
    pack_hash: Optional[str] = None,
) -> MarketPolicyProfile:
    """Convert a validated pack into the profile for one market."""
    rules = pack.fcha
    if not rules.enabled:
        return MarketPolicyProfile(
            market_id=market_id,
            requires_gate=False,
            market_pack_id=pack.id,
            market_pack_version=pack.version,
            policy_version=pack.policy_version,
            jurisdiction=pack.jurisdiction,
            pack_hash=pack_hash,
        )

    legacy = rules.legacy
    return MarketPolicyProfile(
        market_id=market_id,
        requires_gate=True,
        market_pack_id=pack.id,
        market_pack_version=pack.version,
        policy_version=pack.policy_version,
        transition_graph=_convert_graph(pack),
        prerequisite_validators={
            _edge(t): t.prerequisite for t in rules.transitions if t.prerequisite
        },
        check_classifier={
            CheckType(c): CheckClassification.RESTRICTED for c in rules.restricted_checks
        },
        restricted_unlock_state=(
            WorkflowState(rules.restricted_unlock_state)
            if rules.restricted_unlock_state else None
        ),
        notice_config=_convert_notice_config(pack),
        response_window_days=rules.response_window_days,
        jurisdiction=pack.jurisdiction,
        rule_reference=rules.rule_reference,
        documentation_url=rules.documentation_url,
        article_23a_factors=tuple(rules.article_23a_factors),
        legacy_stage_order=tuple(LegacyStage(s) for s in legacy.stage_order) if legacy else (),
        legacy_stage_map=(
            {LegacyStage(k): WorkflowState(v) for k, v in legacy.stage_map.items()}
            if legacy else {}
        ),
        pack_hash=pack_hash,
    )


# =============================================================================
# Loaded Market Table
# =============================================================================

@dataclass
class MarketTable:
    """
    Result of loading a packs directory.

    Attributes:
        profiles: Upper-case market id -> profile
        default_pack: Pack used to describe unregistered markets
        packs: Pack id -> validated pack
    """
    profiles: dict[str, MarketPolicyProfile]
    default_pack: MarketPackSchema
    packs: dict[str, MarketPackSchema] = field(default_factory=dict)


# =============================================================================
# Market Pack Loader
# =============================================================================

class MarketPackLoader:
    """
    Loads market packs from YAML or JSON files.

    Usage:
        loader = MarketPackLoader()
        pack = loader.load("path/to/nyc_strict.yaml")
        profile = loader.build_profile("NYC_STRICT", "NYC")

        # Or everything at once, driven by markets.yaml
        table = loader.load_directory("path/to/packs")
    """

    def __init__(self, strict_version: bool = True):
        """
        Initialize the loader.

        Args:
            strict_version: If True, reject packs with incompatible schema versions
        """
        self.strict_version = strict_version

        self._packs: dict[str, MarketPackSchema] = {}
        self._hashes: dict[str, str] = {}

    def load(self, path: Union[str, Path]) -> MarketPackSchema:
        """
        Load a market pack from a file.

        Raises:
            PackLoadError: If file cannot be read
            PackValidationError: If validation fails
            PackVersionMismatch: If schema version incompatible
        """
        path = Path(path)
        data = self._read(path)
        pack = self.load_data(data, source=str(path))
        logger.debug(
            "Loaded market pack %s v%s from %s", pack.id, pack.version, path,
            extra={"market_pack": pack.id, "pack_hash_short": self._hashes[pack.id][:12]},
        )
        return pack

    def load_data(self, data: dict[str, Any], source: str = "<memory>") -> MarketPackSchema:
        """Validate an already-parsed pack and cache it under its id."""
        self._check_version(data, source)

        try:
            pack = validate_market_pack(data)
        except ValidationError as e:
            raise PackValidationError(
                message=f"Market pack validation failed: {e.error_count()} errors",
                details={"errors": e.errors(include_url=False), "path": source},
            )

        try:
            validate_reference_integrity(pack, source)
        except ValueError as e:
            raise PackValidationError(
                message="Reference integrity validation failed",
                details={"errors": str(e), "path": source},
            )

        if pack.id in self._packs:
            raise PackValidationError(
                message=f"Duplicate market pack id '{pack.id}'",
                details={"path": source},
            )

        self._packs[pack.id] = pack
        self._hashes[pack.id] = compute_pack_hash(pack.model_dump(mode="json", by_alias=True))
        return pack

    def load_index(self, path: Union[str, Path]) -> MarketsIndexSchema:
        """Load and validate a markets index file."""
        path = Path(path)
        data = self._read(path)
        self._check_version(data, str(path))
        try:
            return validate_markets_index(data)
        except ValidationError as e:
            raise PackValidationError(
                message=f"Markets index validation failed: {e.error_count()} errors",
                details={"errors": e.errors(include_url=False), "path": str(path)},
            )

    def load_directory(self, directory: Union[str, Path]) -> MarketTable:
        """
        Load every pack in a directory plus its markets index.

        Raises:
            PackLoadError: If the directory or its index is missing
            PackValidationError: If a pack or the index is invalid
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise PackLoadError(
                message=f"Packs directory not found: {directory}",
                details={"path": str(directory)},
            )

        index_path = directory / INDEX_FILENAME
        if not index_path.is_file():
            raise PackLoadError(
                message=f"Markets index not found: {index_path}",
                details={"path": str(index_path)},
            )

        for path in sorted(directory.iterdir()):
            if path.name == INDEX_FILENAME or path.suffix.lower() not in PACK_SUFFIXES:
                continue
            self.load(path)

        index = self.load_index(index_path)
        try:
            validate_index_integrity(index, set(self._packs))
        except ValueError as e:
            raise PackValidationError(
                message="Markets index references unknown packs",
                details={"errors": str(e), "path": str(index_path)},
            )

        profiles = {
            market_id: self.build_profile(pack_id, market_id)
            for market_id, pack_id in index.markets.items()
        }
        logger.info(
            "Loaded %d market(s) from %d pack(s) in %s",
            len(profiles), len(self._packs), directory,
        )
        return MarketTable(
            profiles=profiles,
            default_pack=self._packs[index.default_pack],
            packs=dict(self._packs),
        )

    def build_profile(self, pack_id: str, market_id: str) -> MarketPolicyProfile:
        """Build the profile for market_id from a loaded pack."""
        pack = self._packs.get(pack_id.strip().upper())
        if pack is None:
            raise PackValidationError(
                message=f"Market pack '{pack_id}' has not been loaded",
                details={"pack_id": pack_id},
                market_id=market_id,
            )
        return _convert_profile(pack, market_id, self._hashes.get(pack.id))

    def _check_version(self, data: dict[str, Any], source: str) -> None:
        if self.strict_version and not check_schema_version(data):
            pack_version = data.get("schema_version", "unknown")
            raise PackVersionMismatch(
                message=f"Schema version mismatch: pack has {pack_version}, expected {SCHEMA_VERSION}",
                details={
                    "pack_version": pack_version,
                    "expected_version": SCHEMA_VERSION,
                    "path": source,
                },
            )

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            data = self._load_file(path)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise PackLoadError(
                message=f"Failed to load market pack: {e}",
                details={"path": str(path), "error": str(e)},
            )
        if not isinstance(data, dict):
            raise PackLoadError(
                message="Market pack file must contain a mapping",
                details={"path": str(path)},
            )
        return data

    def _load_file(self, path: Path) -> Any:
        """Load data from YAML or JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)

    def get_pack(self, pack_id: str) -> Optional[MarketPackSchema]:
        """Get a cached pack by ID."""
        return self._packs.get(pack_id.strip().upper())

    def get_pack_hash(self, pack_id: str) -> Optional[str]:
        """Get the canonical hash of a cached pack."""
        return self._hashes.get(pack_id.strip().upper())

    def list_packs(self) -> list[str]:
        """List IDs of all loaded packs."""
        return list(self._packs.keys())


# =============================================================================
# Convenience Functions
# =============================================================================

def load_market_pack(path: Union[str, Path]) -> MarketPackSchema:
    """Load a single market pack with a temporary loader."""
    return MarketPackLoader().load(path)


def load_market_pack_from_string(content: str, format: str = "yaml") -> MarketPackSchema:
    """
    Load a market pack from a string.

    Args:
        content: YAML or JSON string
        format: "yaml" or "json"
    """
    if format.lower() == "json":
        data = json.loads(content)
    else:
        data = yaml.safe_load(content)
    return MarketPackLoader().load_data(data)


def default_packs_dir() -> Path:
    """Directory of the market packs shipped with the package."""
    return Path(__file__).parent / "data"
