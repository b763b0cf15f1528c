"""
FairGate Market Pack Schemas

Pydantic models for validating market pack YAML/JSON files.

These schemas define the structure of market packs loaded at startup.
They map to MarketPolicyProfile in fairgate.models.

Schema versioning:
- schema_version field tracks breaking changes
- Loaders check the major version before validating

A markets index (markets.yaml) maps market ids to pack ids and names the
default pack used for unregistered markets.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Schema Version
# =============================================================================

SCHEMA_VERSION = "1.0.0"


# =============================================================================
# Enums as Literals (for YAML validation)
# =============================================================================

WorkflowStateValue = Literal[
    "PREQUALIFICATION", "CONDITIONAL_OFFER", "BACKGROUND_CHECK_ALLOWED",
    "INDIVIDUALIZED_ASSESSMENT", "APPROVED", "DENIED",
]

CheckTypeValue = Literal[
    "criminal_background_check", "criminal_history", "arrest_record",
    "conviction_record", "income_verification", "credit_check",
    "rental_history", "employment_verification", "eviction_history",
]

NoticeTypeValue = Literal[
    "conditional_offer_letter", "background_check_authorization",
    "adverse_action_notice", "article_23a_factors_notice",
    "approval_notice", "denial_notice",
]

# Names in the closed validator table (fairgate.engine.prerequisites.VALIDATORS)
PrerequisiteValue = Literal[
    "prequalification_complete",
    "background_check_authorized",
    "adverse_notice_delivered",
    "final_decision_recorded",
    "final_decision_with_assessment",
]

LegacyStageValue = Literal[
    "initial_inquiry", "application_submitted", "application_review",
    "conditional_offer", "background_check", "final_approval", "lease_signing",
]

_VERSION_PARTS = 3


def _is_semver(value: str) -> bool:
    parts = value.split(".")
    return len(parts) == _VERSION_PARTS and all(p.isdigit() for p in parts)


# =============================================================================
# Transition Schemas
# =============================================================================

class TransitionSchema(BaseModel):
    """One edge of the workflow graph with its prerequisite and notices."""
    from_state: WorkflowStateValue = Field(..., alias="from", description="Source state")
    to_state: WorkflowStateValue = Field(..., alias="to", description="Target state")
    prerequisite: Optional[PrerequisiteValue] = Field(
        None, description="Validator run before the edge is taken (None = no check)"
    )
    notices: list[NoticeTypeValue] = Field(
        default_factory=list,
        description="Notices recorded in the evidence when the edge is taken",
    )
    opens_response_window: bool = Field(
        False, description="Whether the edge starts the applicant response period"
    )
    description: Optional[str] = None

    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_not_self_loop(self) -> "TransitionSchema":
        if self.from_state == self.to_state:
            raise ValueError(f"Transition '{self.from_state}' -> itself is not allowed")
        return self


class LegacySchema(BaseModel):
    """Stage vocabulary for pre-workflow callers."""
    stage_order: list[LegacyStageValue] = Field(
        default_factory=list, description="Stages in their required order"
    )
    stage_map: dict[LegacyStageValue, WorkflowStateValue] = Field(
        default_factory=dict, description="Legacy stage -> workflow state"
    )

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_stages(self) -> "LegacySchema":
        if len(set(self.stage_order)) != len(self.stage_order):
            raise ValueError("Legacy stage_order contains duplicate stages")
        unmapped = [s for s in self.stage_order if s not in self.stage_map]
        if unmapped:
            raise ValueError(f"Legacy stages without a workflow state: {', '.join(unmapped)}")
        return self


class FairChanceRulesSchema(BaseModel):
    """
    Fair Chance Housing rule block of a market pack.

    When enabled is False the rest of the block is ignored and markets
    using the pack are not gated.
    """
    enabled: bool = Field(..., description="Whether the market is gated at all")
    rule_reference: str = Field("", description="Statute cited on violations")
    documentation_url: Optional[str] = Field(None, description="Where the rule is explained")
    restricted_unlock_state: Optional[WorkflowStateValue] = Field(
        "BACKGROUND_CHECK_ALLOWED",
        description="Only state in which restricted checks may run",
    )
    response_window_days: int = Field(
        10, ge=1, le=90, description="Applicant response period in calendar days"
    )
    restricted_checks: list[CheckTypeValue] = Field(
        default_factory=list, description="Check types gated behind the unlock state"
    )
    article_23a_factors: list[str] = Field(
        default_factory=list, description="Factors an individualized assessment considers"
    )
    transitions: list[TransitionSchema] = Field(
        default_factory=list, description="Workflow graph edges"
    )
    legacy: Optional[LegacySchema] = Field(None, description="Legacy stage vocabulary")

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_enabled_block(self) -> "FairChanceRulesSchema":
        if self.enabled:
            if not self.transitions:
                raise ValueError("Enabled Fair Chance rules require at least one transition")
            if not self.rule_reference:
                raise ValueError("Enabled Fair Chance rules require a rule_reference")
        return self


# =============================================================================
# Pack Schema
# =============================================================================

class MarketPackSchema(BaseModel):
    """
    Top-level schema for a market pack YAML/JSON file.

    A market pack defines the Fair Chance rules for every market mapped
    to it in the markets index.
    """
    # Metadata
    schema_version: str = Field(SCHEMA_VERSION, description="Schema version for compatibility")
    id: str = Field(..., description="Unique identifier (e.g., 'NYC_STRICT')")
    name: str = Field(..., description="Human-readable name")
    version: str = Field(..., description="Pack version (major.minor.patch)")
    policy_version: str = Field("1.0.0", description="Version of the rule semantics")
    jurisdiction: str = Field(..., description="Jurisdiction (e.g., 'US-NY-NYC')")
    effective_date: Optional[date] = Field(None, description="When this version is effective")
    description: Optional[str] = None

    fcha: FairChanceRulesSchema = Field(..., description="Fair Chance Housing rules")

    model_config = {"extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("jurisdiction")
    @classmethod
    def validate_jurisdiction(cls, v: str) -> str:
        return v.upper()

    @field_validator("version", "policy_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not _is_semver(v):
            raise ValueError(f"Version '{v}' is not major.minor.patch")
        return v


class MarketsIndexSchema(BaseModel):
    """Schema for markets.yaml: market id -> pack id."""
    schema_version: str = Field(SCHEMA_VERSION, description="Schema version for compatibility")
    default_pack: str = Field(..., description="Pack used for unregistered markets")
    markets: dict[str, str] = Field(default_factory=dict, description="Market id -> pack id")

    model_config = {"extra": "forbid"}

    @field_validator("default_pack")
    @classmethod
    def validate_default_pack(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("markets")
    @classmethod
    def normalize_markets(cls, v: dict[str, str]) -> dict[str, str]:
        normalized: dict[str, str] = {}
        for market_id, pack_id in v.items():
            key = str(market_id).strip().upper()
            if key in normalized:
                raise ValueError(f"Market '{key}' is listed more than once")
            normalized[key] = str(pack_id).strip().upper()
        return normalized


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_market_pack(data: dict[str, Any]) -> MarketPackSchema:
    """
    Validate a market pack dictionary against the schema.

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return MarketPackSchema.model_validate(data)


def validate_markets_index(data: dict[str, Any]) -> MarketsIndexSchema:
    """Validate a markets index dictionary against the schema."""
    return MarketsIndexSchema.model_validate(data)


def check_schema_version(data: dict[str, Any]) -> bool:
    """
    Check if a pack's schema version is compatible.

    Only the major version has to match.
    """
    pack_version = str(data.get("schema_version", SCHEMA_VERSION))
    pack_major = pack_version.split(".")[0]
    current_major = SCHEMA_VERSION.split(".")[0]
    return pack_major == current_major
