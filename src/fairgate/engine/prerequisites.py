"""
FairGate Prerequisite Validators

Closed table of edge prerequisites. A market pack names the validator for
each edge; the name must be a key of VALIDATORS.

Every validator takes the request and the market profile and returns a
PrerequisiteResult. Validators never raise: a missing payload, or a payload
missing a field, is a failed prerequisite.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from ..models import (
    FinalDecisionType,
    MarketPolicyProfile,
    RecommendedFix,
    TransitionRequest,
    Violation,
    ViolationCode,
    WorkflowState,
)


ARTICLE_23A_REFERENCE = "NY Correction Law Article 23-A"


@dataclass(frozen=True)
class PrerequisiteResult:
    """
    Outcome of one prerequisite validator.

    details is copied into the evidence record when the transition passes.
    """
    violations: tuple[Violation, ...] = ()
    fixes: tuple[RecommendedFix, ...] = ()
    details: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def passed(self) -> bool:
        return not any(v.is_blocking for v in self.violations)


Validator = Callable[[TransitionRequest, MarketPolicyProfile], PrerequisiteResult]


def cite(profile: MarketPolicyProfile, subsection: Optional[str] = None) -> Optional[str]:
    """Statute citation for a profile, optionally narrowed to a subsection."""
    if not profile.rule_reference:
        return None
    if subsection:
        return f"{profile.rule_reference}({subsection})"
    return profile.rule_reference


def _violation(
    profile: MarketPolicyProfile,
    code: ViolationCode,
    message: str,
    subsection: Optional[str],
    **evidence: Any,
) -> Violation:
    return Violation(
        code=code,
        message=message,
        evidence=evidence,
        rule_reference=cite(profile, subsection),
        documentation_url=profile.documentation_url,
    )


def _failed(violation: Violation, action: str, description: str) -> PrerequisiteResult:
    return PrerequisiteResult(
        violations=(violation,),
        fixes=(RecommendedFix(action=action, description=description),),
    )


# =============================================================================
# Validators
# =============================================================================

def prequalification_complete(
    request: TransitionRequest, profile: MarketPolicyProfile
) -> PrerequisiteResult:
    """All non-criminal criteria met and the written offer delivered."""
    results = request.prequalification_results
    offer = request.conditional_offer_details

    unmet = []
    if results is None:
        unmet.append("prequalification_results")
    else:
        for name in ("income_verified", "credit_check_passed",
                     "rental_history_verified", "employment_verified"):
            if getattr(results, name) is not True:
                unmet.append(name)
    if offer is None or offer.offer_letter_delivered is not True:
        unmet.append("offer_letter_delivered")

    if unmet:
        return _failed(
            _violation(
                profile,
                ViolationCode.FCHA_PREQUALIFICATION_INCOMPLETE,
                "Cannot issue conditional offer without completing prequalification "
                "and delivering the written offer",
                "2",
                unmet_criteria=unmet,
                rationale="A conditional offer can only be made after evaluating all "
                          "non-criminal eligibility criteria.",
            ),
            action="complete_prequalification",
            description="Complete all prequalification checks and deliver a written "
                        "conditional offer for a specific unit",
        )

    return PrerequisiteResult(details={
        "prequalification_results": {
            "income_verified": True,
            "credit_check_passed": True,
            "rental_history_verified": True,
            "employment_verified": True,
            "all_criteria_met": True,
        },
        "conditional_offer": {
            "unit_id": offer.unit_id,
            "delivery_method": offer.delivery_method,
        },
    })


def background_check_authorized(
    request: TransitionRequest, profile: MarketPolicyProfile
) -> PrerequisiteResult:
    """Applicant signed the background check authorization."""
    authorization = request.background_check_authorization
    if authorization is None or authorization.authorization_signed is not True:
        return _failed(
            _violation(
                profile,
                ViolationCode.FCHA_NOTICE_NOT_ISSUED,
                "Background check authorization must be signed by applicant",
                "4",
                authorization_signed=bool(authorization and authorization.authorization_signed),
            ),
            action="obtain_authorization",
            description="Obtain signed authorization from applicant before running "
                        "criminal background check",
        )
    return PrerequisiteResult(details={
        "background_check_authorization": {
            "authorization_signed": True,
            "signed_at": authorization.signed_at,
        },
    })


def adverse_notice_delivered(
    request: TransitionRequest, profile: MarketPolicyProfile
) -> PrerequisiteResult:
    """Adverse information was found and the applicant was told about it."""
    adverse = request.adverse_info_details
    if adverse is None or adverse.adverse_info_found is not True:
        return _failed(
            _violation(
                profile,
                ViolationCode.FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED,
                "Individualized assessment requires an adverse background check finding",
                "5",
                adverse_info_found=False,
            ),
            action="record_adverse_finding",
            description="Record the adverse background check finding, or approve "
                        "the application directly when the check is clear",
        )
    if adverse.notice_delivered is not True:
        return _failed(
            _violation(
                profile,
                ViolationCode.FCHA_NOTICE_NOT_ISSUED,
                "Adverse action notice must be delivered to applicant with Article 23-A factors",
                "5",
                adverse_info_found=True,
                notice_delivered=False,
                rationale="Before denying based on criminal history, applicant must receive "
                          "notice with Article 23-A factors and opportunity to respond.",
            ),
            action="deliver_adverse_notice",
            description="Deliver adverse action notice with Article 23-A factors and "
                        "response window",
        )
    return PrerequisiteResult(details={
        "background_check": {
            "type": "criminal_background_check",
            "result": "adverse_info_found",
            "adverse_info_summary": adverse.adverse_info_summary,
        },
    })


def final_decision_recorded(
    request: TransitionRequest, profile: MarketPolicyProfile
) -> PrerequisiteResult:
    """A written final decision whose outcome matches the target state."""
    decision = request.final_decision
    rationale = ""
    if decision is not None and isinstance(decision.rationale, str):
        rationale = decision.rationale.strip()
    if not rationale:
        return _failed(
            _violation(
                profile,
                ViolationCode.FCHA_NOTICE_NOT_ISSUED,
                "Final decision must include written rationale",
                "6",
                rationale_provided=False,
                target_state=request.target_state,
            ),
            action="provide_rationale",
            description="Provide written rationale for final decision",
        )

    expected = (
        FinalDecisionType.DENIED
        if request.target_state == WorkflowState.DENIED
        else FinalDecisionType.APPROVED
    )
    if decision.decision != expected:
        return _failed(
            _violation(
                profile,
                ViolationCode.FCHA_NOTICE_NOT_ISSUED,
                f"Final decision must record '{expected.value}' to move to "
                f"{request.target_state.value}",
                "6",
                decision_provided=decision.decision,
                expected_decision=expected,
                target_state=request.target_state,
            ),
            action="record_decision_outcome",
            description=f"Record the final decision as '{expected.value}' or "
                        "request the matching target state",
        )

    return PrerequisiteResult(details={
        "final_decision": {
            "decision": decision.decision,
            "rationale": rationale,
            "article_23a_factors_considered": list(decision.article_23a_factors_considered),
        },
    })


def final_decision_with_assessment(
    request: TransitionRequest, profile: MarketPolicyProfile
) -> PrerequisiteResult:
    """Written final decision plus at least one Article 23-A factor considered."""
    result = final_decision_recorded(request, profile)
    if not result.passed:
        return result

    factors = request.final_decision.article_23a_factors_considered
    if not factors:
        return PrerequisiteResult(
            violations=(Violation(
                code=ViolationCode.FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED,
                message="Denial after individualized assessment must consider "
                        "Article 23-A factors",
                evidence={
                    "factors_considered": [],
                    "expected_factors": list(profile.article_23a_factors),
                    "rationale": "When denying based on criminal history, landlord must "
                                 "conduct and document individualized assessment "
                                 "considering all Article 23-A factors.",
                },
                rule_reference=ARTICLE_23A_REFERENCE,
                documentation_url=profile.documentation_url,
            ),),
            fixes=(RecommendedFix(
                action="complete_article_23a",
                description="Complete Article 23-A individualized assessment before denial",
            ),),
        )
    return result


VALIDATORS: Mapping[str, Validator] = MappingProxyType({
    "prequalification_complete": prequalification_complete,
    "background_check_authorized": background_check_authorized,
    "adverse_notice_delivered": adverse_notice_delivered,
    "final_decision_recorded": final_decision_recorded,
    "final_decision_with_assessment": final_decision_with_assessment,
})


def run_prerequisite(
    name: Optional[str],
    request: TransitionRequest,
    profile: MarketPolicyProfile,
) -> PrerequisiteResult:
    """
    Run the named validator; an edge without one passes.

    Raises:
        KeyError: If name is not in VALIDATORS (packs are validated against
            the same names at load time)
    """
    if name is None:
        return PrerequisiteResult()
    return VALIDATORS[name](request, profile)
