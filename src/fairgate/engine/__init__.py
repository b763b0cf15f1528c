"""
FairGate Engine

Gates and the rule table behind them.

Services:
- PolicyRegistry / ReloadableRegistry: Market id -> profile
- TransitionGate: Workflow state transitions, with evidence
- CheckGate: Screening check timing
- LegacyGateAdapter: Stage-named gates for older callers

Usage:
    from fairgate.engine import (
        CheckGate,
        LegacyGateAdapter,
        TransitionGate,
        load_default_registry,
    )

    registry = load_default_registry()
    transitions = TransitionGate(registry=registry)
    checks = CheckGate(registry=registry)
"""
from __future__ import annotations

from .registry import (
    PolicyRegistry,
    ReloadableRegistry,
    load_default_registry,
    normalize_market_id,
)
from .prerequisites import (
    ARTICLE_23A_REFERENCE,
    VALIDATORS,
    PrerequisiteResult,
    run_prerequisite,
)
from .rules import (
    TERMINAL_STATES,
    CheckEvaluation,
    classify_check,
    evaluate_check,
    evaluate_edge,
    evaluate_stage_order,
    evaluate_transition,
    is_terminal_state,
    is_valid_transition,
    legacy_stage_state,
    valid_next_states,
)
from .transition_gate import TransitionGate
from .check_gate import CheckGate
from .legacy_adapter import LEGACY_CODES, LegacyGateAdapter, to_legacy

__all__ = [
    # Registry
    "PolicyRegistry",
    "ReloadableRegistry",
    "load_default_registry",
    "normalize_market_id",
    # Prerequisites
    "ARTICLE_23A_REFERENCE",
    "VALIDATORS",
    "PrerequisiteResult",
    "run_prerequisite",
    # Rules
    "TERMINAL_STATES",
    "CheckEvaluation",
    "classify_check",
    "evaluate_check",
    "evaluate_edge",
    "evaluate_stage_order",
    "evaluate_transition",
    "is_terminal_state",
    "is_valid_transition",
    "legacy_stage_state",
    "valid_next_states",
    # Gates
    "CheckGate",
    "LegacyGateAdapter",
    "TransitionGate",
    "LEGACY_CODES",
    "to_legacy",
]
