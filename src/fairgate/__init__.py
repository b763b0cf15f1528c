"""
FairGate - Fair Chance Housing Compliance Gate

FairGate decides, for a rental application, whether a requested workflow
transition or screening check is permitted right now under the market's
Fair Chance Housing rules (NYC Admin Code § 8-107(11-b), NY Correction
Law Article 23-A).

Core Principle: "The gate decides and documents. The caller persists."

Key Features:
- Market packs (YAML) per jurisdiction, validated at load time
- Criminal history inquiry deferred until after a conditional offer
- Notice and response-window obligations recorded as evidence
- Content-hashed evidence records for the audit sink
- Legacy stage-named gates backed by the same rules

Quick Start:
    from fairgate import (
        CheckGate, CheckRequest, TransitionGate, TransitionRequest,
        load_default_registry,
    )

    registry = load_default_registry()
    gate = TransitionGate(registry=registry)

    result = gate.gate(TransitionRequest.from_dict({
        "applicationId": "app-1",
        "marketId": "NYC",
        "currentState": "CONDITIONAL_OFFER",
        "targetState": "BACKGROUND_CHECK_ALLOWED",
        "actorId": "agent-7",
        "actorType": "agent",
        "backgroundCheckAuthorization": {"authorizationSigned": True},
    }))
    if result.allowed:
        audit_sink.append(result.evidence.to_dict())

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "FairGate Team"

# =============================================================================
# Core Models (Re-exported for convenience)
# =============================================================================
from .models import (
    # Enums
    ActorType,
    CheckType,
    LegacyStage,
    Severity,
    UnknownMarketMode,
    ViolationCode,
    WorkflowState,
    # Policy
    MarketPolicyProfile,
    # Requests
    CheckRequest,
    LegacyBackgroundCheckRequest,
    LegacyStageTransitionRequest,
    TransitionRequest,
    # Results
    Decision,
    EvidenceRecord,
    GateResult,
    TransitionGateResult,
    Violation,
)

# =============================================================================
# Engine
# =============================================================================
from .engine import (
    CheckGate,
    LegacyGateAdapter,
    PolicyRegistry,
    ReloadableRegistry,
    TransitionGate,
    is_terminal_state,
    is_valid_transition,
    load_default_registry,
    valid_next_states,
)

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    FairGateError,
    MarketNotFoundError,
    PackLoadError,
    PackValidationError,
    PackVersionMismatch,
    RequestValidationError,
    SettingsError,
)

__all__ = [
    "__version__",
    # Enums
    "ActorType",
    "CheckType",
    "LegacyStage",
    "Severity",
    "UnknownMarketMode",
    "ViolationCode",
    "WorkflowState",
    # Models
    "MarketPolicyProfile",
    "CheckRequest",
    "LegacyBackgroundCheckRequest",
    "LegacyStageTransitionRequest",
    "TransitionRequest",
    "Decision",
    "EvidenceRecord",
    "GateResult",
    "TransitionGateResult",
    "Violation",
    # Engine
    "CheckGate",
    "LegacyGateAdapter",
    "PolicyRegistry",
    "ReloadableRegistry",
    "TransitionGate",
    "is_terminal_state",
    "is_valid_transition",
    "load_default_registry",
    "valid_next_states",
    # Exceptions
    "FairGateError",
    "MarketNotFoundError",
    "PackLoadError",
    "PackValidationError",
    "PackVersionMismatch",
    "RequestValidationError",
    "SettingsError",
]
