"""
FairGate Market Policy Profiles

One immutable MarketPolicyProfile per market. Profiles are built by the
pack loader from a market pack and never change after construction; a
policy reload replaces the whole registry instead.

Key components:
- NoticeConfig: notices an edge records and whether it opens a response window
- MarketPolicyProfile: the complete rule table for one market
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from .enums import CheckClassification, CheckType, LegacyStage, NoticeType, WorkflowState


Edge = tuple[WorkflowState, WorkflowState]

DEFAULT_MARKET_PACK_ID = "US_STANDARD"
DEFAULT_POLICY_VERSION = "1.0.0"

# Criminal history inquiries gated in every enforced market unless a pack
# says otherwise.
DEFAULT_RESTRICTED_CHECKS = frozenset({
    CheckType.CRIMINAL_BACKGROUND_CHECK,
    CheckType.CRIMINAL_HISTORY,
    CheckType.ARREST_RECORD,
    CheckType.CONVICTION_RECORD,
})


def _frozen(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


# =============================================================================
# Notice Configuration
# =============================================================================

@dataclass(frozen=True)
class NoticeConfig:
    """
    Notice obligations attached to a transition edge.

    Attributes:
        notices: Notices recorded in the evidence when the edge is taken
        opens_response_window: Whether taking the edge starts the applicant's
            response period (length comes from the profile)
    """
    notices: tuple[NoticeType, ...] = ()
    opens_response_window: bool = False


# =============================================================================
# Market Policy Profile
# =============================================================================

@dataclass(frozen=True)
class MarketPolicyProfile:
    """
    Complete Fair Chance rule table for one market.

    Attributes:
        market_id: Upper-case market identifier (e.g., "NYC")
        requires_gate: False means every request is allowed unexamined
        transition_graph: State -> states reachable in one step
        prerequisite_validators: Edge -> validator name (closed table in
            fairgate.engine.prerequisites)
        check_classifier: CheckType -> restricted/unrestricted
        restricted_unlock_state: Only state in which restricted checks may
            run; None blocks restricted checks everywhere
        notice_config: Edge -> NoticeConfig
        response_window_days: Applicant response period in days
        policy_version: Version of the rule semantics
        market_pack_id: Pack this profile was built from
        market_pack_version: Pack version as "major.minor.patch"
    """
    market_id: str
    requires_gate: bool
    market_pack_id: str = DEFAULT_MARKET_PACK_ID
    market_pack_version: str = "0.0.0"
    policy_version: str = DEFAULT_POLICY_VERSION

    transition_graph: Mapping[WorkflowState, frozenset[WorkflowState]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    prerequisite_validators: Mapping[Edge, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    check_classifier: Mapping[CheckType, CheckClassification] = field(
        default_factory=lambda: MappingProxyType({})
    )
    restricted_unlock_state: Optional[WorkflowState] = WorkflowState.BACKGROUND_CHECK_ALLOWED
    notice_config: Mapping[Edge, NoticeConfig] = field(
        default_factory=lambda: MappingProxyType({})
    )
    response_window_days: int = 10

    # Citation and descriptive metadata
    jurisdiction: str = ""
    rule_reference: str = ""
    documentation_url: Optional[str] = None
    article_23a_factors: tuple[str, ...] = ()

    # Legacy vocabulary
    legacy_stage_order: tuple[LegacyStage, ...] = ()
    legacy_stage_map: Mapping[LegacyStage, WorkflowState] = field(
        default_factory=lambda: MappingProxyType({})
    )

    pack_hash: Optional[str] = None

    def __post_init__(self) -> None:
        # Mappings are copied into read-only proxies so callers that built
        # the profile cannot mutate it afterwards.
        object.__setattr__(self, "market_id", self.market_id.strip().upper())
        object.__setattr__(self, "transition_graph", _frozen(
            {k: frozenset(v) for k, v in dict(self.transition_graph).items()}
        ))
        object.__setattr__(self, "prerequisite_validators", _frozen(self.prerequisite_validators))
        object.__setattr__(self, "check_classifier", _frozen(self.check_classifier))
        object.__setattr__(self, "notice_config", _frozen(self.notice_config))
        object.__setattr__(self, "legacy_stage_map", _frozen(self.legacy_stage_map))
        object.__setattr__(self, "article_23a_factors", tuple(self.article_23a_factors))
        object.__setattr__(self, "legacy_stage_order", tuple(self.legacy_stage_order))

    @property
    def edges(self) -> frozenset[Edge]:
        """All (from, to) pairs in the transition graph."""
        return frozenset(
            (source, target)
            for source, targets in self.transition_graph.items()
            for target in targets
        )

    def has_edge(self, source: WorkflowState, target: WorkflowState) -> bool:
        """Check if (source, target) is an attemptable transition."""
        return target in self.transition_graph.get(source, frozenset())

    def classify(self, check_type: CheckType) -> CheckClassification:
        """Classify a check; anything not listed is unrestricted."""
        return self.check_classifier.get(check_type, CheckClassification.UNRESTRICTED)

    def notices_for(self, edge: Edge) -> NoticeConfig:
        """Notice configuration for an edge (empty when not configured)."""
        return self.notice_config.get(edge, NoticeConfig())

    @property
    def restricted_checks(self) -> frozenset[CheckType]:
        """Check types classified as restricted."""
        return frozenset(
            check for check, classification in self.check_classifier.items()
            if classification == CheckClassification.RESTRICTED
        )


def unenforced_profile(
    market_id: str,
    market_pack_id: str = DEFAULT_MARKET_PACK_ID,
    market_pack_version: str = "0.0.0",
    policy_version: str = DEFAULT_POLICY_VERSION,
) -> MarketPolicyProfile:
    """Profile for a market where Fair Chance rules do not apply."""
    return MarketPolicyProfile(
        market_id=market_id,
        requires_gate=False,
        market_pack_id=market_pack_id,
        market_pack_version=market_pack_version,
        policy_version=policy_version,
    )


def closed_profile(
    market_id: str,
    market_pack_id: str = "UNREGISTERED",
    policy_version: str = DEFAULT_POLICY_VERSION,
    restricted_checks: frozenset[CheckType] = DEFAULT_RESTRICTED_CHECKS,
) -> MarketPolicyProfile:
    """
    Enforced profile with no edges and no unlock state.

    Every transition is rejected as an invalid edge and every restricted
    check is blocked regardless of state.
    """
    return MarketPolicyProfile(
        market_id=market_id,
        requires_gate=True,
        market_pack_id=market_pack_id,
        policy_version=policy_version,
        check_classifier={c: CheckClassification.RESTRICTED for c in restricted_checks},
        restricted_unlock_state=None,
    )
