"""
FairGate Models

Value types shared by every gate: enums, market policy profiles,
requests, decisions and evidence records.
"""
from __future__ import annotations

from .enums import (
    ActorType,
    CheckClassification,
    CheckType,
    DeliveryMethod,
    FinalDecisionType,
    FixPriority,
    LegacyStage,
    NoticeType,
    Severity,
    UnknownMarketMode,
    ViolationCode,
    WorkflowState,
)
from .policy import (
    DEFAULT_MARKET_PACK_ID,
    DEFAULT_POLICY_VERSION,
    DEFAULT_RESTRICTED_CHECKS,
    Edge,
    MarketPolicyProfile,
    NoticeConfig,
    closed_profile,
    unenforced_profile,
)
from .requests import (
    AdverseInfoDetails,
    BackgroundCheckAuthorization,
    CheckRequest,
    ConditionalOfferDetails,
    FinalDecision,
    LegacyBackgroundCheckRequest,
    LegacyStageTransitionRequest,
    PrequalificationResults,
    TransitionRequest,
)
from .decision import (
    Decision,
    GateResult,
    RecommendedFix,
    TransitionGateResult,
    Violation,
    build_decision,
)
from .evidence import (
    EvidenceRecord,
    NoticeIssued,
    ResponseWindow,
)

__all__ = [
    # Enums
    "ActorType",
    "CheckClassification",
    "CheckType",
    "DeliveryMethod",
    "FinalDecisionType",
    "FixPriority",
    "LegacyStage",
    "NoticeType",
    "Severity",
    "UnknownMarketMode",
    "ViolationCode",
    "WorkflowState",
    # Policy
    "DEFAULT_MARKET_PACK_ID",
    "DEFAULT_POLICY_VERSION",
    "DEFAULT_RESTRICTED_CHECKS",
    "Edge",
    "MarketPolicyProfile",
    "NoticeConfig",
    "closed_profile",
    "unenforced_profile",
    # Requests
    "AdverseInfoDetails",
    "BackgroundCheckAuthorization",
    "CheckRequest",
    "ConditionalOfferDetails",
    "FinalDecision",
    "LegacyBackgroundCheckRequest",
    "LegacyStageTransitionRequest",
    "PrequalificationResults",
    "TransitionRequest",
    # Decisions
    "Decision",
    "GateResult",
    "RecommendedFix",
    "TransitionGateResult",
    "Violation",
    "build_decision",
    # Evidence
    "EvidenceRecord",
    "NoticeIssued",
    "ResponseWindow",
]
