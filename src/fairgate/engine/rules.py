"""
FairGate Rule Table

The single set of rule functions behind every gate. The modern gates and
the legacy adapter both call into this module; legacy violation codes are
produced by translating the results at the adapter boundary, never by a
second copy of the rules.

Key functions:
- evaluate_edge: Is (from, to) an attemptable transition?
- evaluate_transition: Edge check plus the edge's prerequisite
- evaluate_check: Classify a screening check and test its timing
- evaluate_stage_order: Legacy stage ordering
- valid_next_states / is_terminal_state / is_valid_transition: graph helpers
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..models import (
    CheckClassification,
    CheckType,
    FixPriority,
    LegacyStage,
    MarketPolicyProfile,
    RecommendedFix,
    Severity,
    TransitionRequest,
    Violation,
    ViolationCode,
    WorkflowState,
)
from .prerequisites import PrerequisiteResult, cite, run_prerequisite


TERMINAL_STATES = frozenset({WorkflowState.APPROVED, WorkflowState.DENIED})

_STATE_ORDER = {state: index for index, state in enumerate(WorkflowState)}


# =============================================================================
# Graph Helpers
# =============================================================================

def valid_next_states(profile: MarketPolicyProfile, state: WorkflowState) -> list[WorkflowState]:
    """States reachable from state in one step, in workflow order."""
    return sorted(profile.transition_graph.get(state, frozenset()), key=_STATE_ORDER.__getitem__)


def is_terminal_state(profile: MarketPolicyProfile, state: WorkflowState) -> bool:
    """
    True when no edge leaves state.

    Profiles without a graph (unenforced markets) fall back to the
    APPROVED/DENIED terminal pair.
    """
    if not profile.transition_graph:
        return state in TERMINAL_STATES
    return not profile.transition_graph.get(state)


def is_valid_transition(
    profile: MarketPolicyProfile,
    source: WorkflowState,
    target: WorkflowState,
) -> bool:
    """True when (source, target) is an edge of the profile's graph."""
    return profile.has_edge(source, target)


# =============================================================================
# Transitions
# =============================================================================

def evaluate_edge(
    profile: MarketPolicyProfile,
    source: WorkflowState,
    target: WorkflowState,
) -> Optional[tuple[Violation, RecommendedFix]]:
    """Violation and fix when (source, target) is not an edge, else None."""
    if profile.has_edge(source, target):
        return None

    next_states = valid_next_states(profile, source)
    violation = Violation(
        code=ViolationCode.FCHA_INVALID_STATE_TRANSITION,
        message=f"Cannot transition from {source.value} to {target.value}",
        evidence={
            "current_state": source,
            "attempted_state": target,
            "valid_next_states": next_states,
            "rationale": "Fair Chance Housing requires applications to follow a "
                         "specific order of evaluation.",
        },
        rule_reference=cite(profile),
        documentation_url=profile.documentation_url,
    )
    fix = RecommendedFix(
        action="follow_workflow_order",
        description=(
            f"Valid next states from {source.value}: "
            f"{', '.join(s.value for s in next_states) or 'none (terminal state)'}"
        ),
    )
    return violation, fix


def evaluate_transition(
    profile: MarketPolicyProfile,
    request: TransitionRequest,
) -> PrerequisiteResult:
    """
    Evaluate a transition request against an enforced profile.

    An invalid edge short-circuits; the prerequisite only runs for an edge
    that exists.
    """
    source, target = request.current_state, request.target_state
    invalid = evaluate_edge(profile, source, target)
    if invalid is not None:
        violation, fix = invalid
        return PrerequisiteResult(violations=(violation,), fixes=(fix,))

    validator = profile.prerequisite_validators.get((source, target))
    return run_prerequisite(validator, request, profile)


# =============================================================================
# Screening Checks
# =============================================================================

@dataclass(frozen=True)
class CheckEvaluation:
    """Classification and timing result for one screening check."""
    check_type: str
    recognized: Optional[CheckType]
    classification: CheckClassification
    violations: tuple[Violation, ...] = ()
    fixes: tuple[RecommendedFix, ...] = ()

    @property
    def restricted(self) -> bool:
        return self.classification == CheckClassification.RESTRICTED

    @property
    def allowed(self) -> bool:
        return not any(v.is_blocking for v in self.violations)


def classify_check(profile: MarketPolicyProfile, check_type: str) -> tuple[Optional[CheckType], CheckClassification]:
    """Map a raw check type onto the closed set and the profile's classifier."""
    recognized = CheckType.parse(check_type)
    if recognized is None:
        return None, CheckClassification.UNRESTRICTED
    return recognized, profile.classify(recognized)


def evaluate_check(
    profile: MarketPolicyProfile,
    check_type: str,
    current_state: WorkflowState,
) -> CheckEvaluation:
    """
    Decide whether check_type may run in current_state.

    Restricted checks run only in the profile's unlock state. Unrecognised
    check types are unrestricted but reported with a warning.
    """
    recognized, classification = classify_check(profile, check_type)
    violations: list[Violation] = []
    fixes: list[RecommendedFix] = []

    if recognized is None:
        violations.append(Violation(
            code=ViolationCode.FCHA_UNRECOGNIZED_CHECK_TYPE,
            message=f"Unknown check type: {check_type}. Verify this is not a "
                    f"prohibited inquiry.",
            severity=Severity.WARNING,
            evidence={"check_type": check_type, "current_state": current_state},
            rule_reference=cite(profile),
            documentation_url=profile.documentation_url,
        ))
        fixes.append(RecommendedFix(
            action="review_check_type",
            description="Confirm the check does not inquire into criminal history",
            priority=FixPriority.MEDIUM,
        ))

    unlock_state = profile.restricted_unlock_state
    if classification == CheckClassification.RESTRICTED and current_state != unlock_state:
        violations.append(Violation(
            code=ViolationCode.FCHA_BACKGROUND_CHECK_NOT_ALLOWED,
            message=f"Criminal background check ({check_type}) is not allowed in "
                    f"state {current_state.value}",
            evidence={
                "check_type": recognized,
                "current_state": current_state,
                "required_state": unlock_state,
                "rationale": "Criminal background checks may only be conducted after a "
                             "written conditional offer has been made and accepted by "
                             "the applicant.",
            },
            rule_reference=cite(profile, "4"),
            documentation_url=profile.documentation_url,
        ))
        fixes.append(RecommendedFix(
            action="issue_conditional_offer_first",
            description="Issue conditional offer and obtain authorization before "
                        "running criminal background check",
        ))

    return CheckEvaluation(
        check_type=check_type,
        recognized=recognized,
        classification=classification,
        violations=tuple(violations),
        fixes=tuple(fixes),
    )


# =============================================================================
# Legacy Stage Order
# =============================================================================

def evaluate_stage_order(
    profile: MarketPolicyProfile,
    current_stage: str,
    target_stage: str,
) -> tuple[tuple[Violation, ...], tuple[RecommendedFix, ...]]:
    """
    Legacy stage ordering: one stage forward, or back any number.

    Unknown stages fail closed. Violations use the modern invalid-transition
    code; the legacy adapter translates it.
    """
    order = [s.value for s in profile.legacy_stage_order]
    unknown = [s for s in (current_stage, target_stage) if s not in order]
    if unknown:
        violation = Violation(
            code=ViolationCode.FCHA_INVALID_STATE_TRANSITION,
            message=f"Unknown stage(s): {', '.join(unknown)}",
            evidence={
                "current_stage": current_stage,
                "target_stage": target_stage,
                "unknown_stages": unknown,
                "stage_order": order,
            },
            rule_reference=cite(profile),
            documentation_url=profile.documentation_url,
        )
        fix = RecommendedFix(
            action="use_known_stage",
            description=f"Use one of: {', '.join(order) or 'no stages configured'}",
        )
        return (violation,), (fix,)

    current_index = order.index(current_stage)
    target_index = order.index(target_stage)
    if target_index > current_index + 1:
        violation = Violation(
            code=ViolationCode.FCHA_INVALID_STATE_TRANSITION,
            message=f"Cannot skip from {current_stage} to {target_stage}",
            evidence={
                "current_stage": current_stage,
                "target_stage": target_stage,
                "skipped_stages": order[current_index + 1:target_index],
            },
            rule_reference=cite(profile),
            documentation_url=profile.documentation_url,
        )
        fix = RecommendedFix(
            action="follow_stage_order",
            description=f"Next stage after {current_stage} is {order[current_index + 1]}",
        )
        return (violation,), (fix,)

    return (), ()


def legacy_stage_state(profile: MarketPolicyProfile, stage: str) -> Optional[WorkflowState]:
    """Workflow state a legacy stage maps to, or None for an unknown stage."""
    try:
        return profile.legacy_stage_map.get(LegacyStage(stage.strip().lower()))
    except ValueError:
        return None
