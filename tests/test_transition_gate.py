"""
Tests for the transition gate.

Covers the NYC workflow graph, every edge prerequisite, evidence records,
unenforced markets and determinism.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from fairgate.engine import PolicyRegistry, TransitionGate
from fairgate.models import (
    ActorType,
    DeliveryMethod,
    NoticeType,
    WorkflowState,
)

from tests.conftest import (
    FIXED_NOW,
    adverse_info,
    authorization,
    final_decision,
    make_check_request,
    make_profile,
    make_transition_request,
    offer_delivered,
    prequalified,
    sequential_ids,
)
from tests.helpers import assert_allowed, assert_blocked, violation_codes


S = WorkflowState

NYC_EDGES = {
    (S.PREQUALIFICATION, S.CONDITIONAL_OFFER),
    (S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED),
    (S.BACKGROUND_CHECK_ALLOWED, S.APPROVED),
    (S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT),
    (S.INDIVIDUALIZED_ASSESSMENT, S.APPROVED),
    (S.INDIVIDUALIZED_ASSESSMENT, S.DENIED),
}

NON_EDGES = [
    (source, target)
    for source in WorkflowState
    for target in WorkflowState
    if (source, target) not in NYC_EDGES
]

EVERY_PAYLOAD = dict(
    prequalification_results=prequalified(),
    conditional_offer_details=offer_delivered(),
    background_check_authorization=authorization(),
    adverse_info_details=adverse_info(),
    final_decision=final_decision(factors=("nature_of_offense",)),
)


# =============================================================================
# Graph
# =============================================================================

class TestInvalidEdges:
    """Pairs outside the graph are rejected regardless of payload."""

    @pytest.mark.parametrize("payloads", [{}, EVERY_PAYLOAD])
    def test_prequalification_to_background_check_rejected(self, transition_gate, payloads):
        """Skipping the conditional offer is never allowed."""
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.BACKGROUND_CHECK_ALLOWED, **payloads,
        ))

        assert_blocked(result, "FCHA_INVALID_STATE_TRANSITION")
        assert result.blocked_reason == (
            "transition blocked: PREQUALIFICATION → BACKGROUND_CHECK_ALLOWED not permitted"
        )

    @pytest.mark.parametrize("source,target", NON_EDGES)
    def test_every_non_edge_rejected(self, transition_gate, source, target):
        result = transition_gate.gate(make_transition_request(source, target, **EVERY_PAYLOAD))

        assert_blocked(result, "FCHA_INVALID_STATE_TRANSITION")
        assert violation_codes(result) == ["FCHA_INVALID_STATE_TRANSITION"]

    def test_invalid_edge_lists_valid_next_states(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.CONDITIONAL_OFFER, S.APPROVED,
        ))

        violation = result.decision.violations[0]
        assert list(violation.evidence["valid_next_states"]) == [S.BACKGROUND_CHECK_ALLOWED]
        assert violation.rule_reference == "NYC Admin Code § 8-107(11-b)"
        assert violation.documentation_url.startswith("https://www.nyc.gov/")

    @pytest.mark.parametrize("terminal", [S.APPROVED, S.DENIED])
    def test_terminal_states_have_no_exit(self, transition_gate, terminal):
        result = transition_gate.gate(make_transition_request(
            terminal, S.PREQUALIFICATION, **EVERY_PAYLOAD,
        ))

        assert_blocked(result, "FCHA_INVALID_STATE_TRANSITION")
        assert "terminal" in result.decision.recommended_fixes[0].description


# =============================================================================
# Prerequisites
# =============================================================================

class TestPrequalificationToOffer:
    """PREQUALIFICATION -> CONDITIONAL_OFFER."""

    def test_allowed_with_all_criteria_and_offer_letter(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            prequalification_results=prequalified(),
            conditional_offer_details=offer_delivered(),
        ))

        assert_allowed(result)
        assert result.evidence is not None

    @pytest.mark.parametrize("flag", [
        "income_verified",
        "credit_check_passed",
        "rental_history_verified",
        "employment_verified",
    ])
    def test_any_false_flag_blocks(self, transition_gate, flag):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            prequalification_results=prequalified(**{flag: False}),
            conditional_offer_details=offer_delivered(),
        ))

        assert_blocked(result, "FCHA_PREQUALIFICATION_INCOMPLETE")
        assert flag in result.decision.violations[0].evidence["unmet_criteria"]

    def test_offer_letter_not_delivered_blocks(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            prequalification_results=prequalified(),
            conditional_offer_details=offer_delivered(delivered=False),
        ))

        assert_blocked(result, "FCHA_PREQUALIFICATION_INCOMPLETE")

    def test_missing_payloads_fold_into_prerequisite_failure(self, transition_gate):
        """Malformed input fails the prerequisite instead of raising."""
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
        ))

        assert_blocked(result, "FCHA_PREQUALIFICATION_INCOMPLETE")
        unmet = result.decision.violations[0].evidence["unmet_criteria"]
        assert "prequalification_results" in unmet
        assert "offer_letter_delivered" in unmet

    def test_missing_flag_is_not_true(self, transition_gate):
        results = prequalified()
        del results["employment_verified"]

        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            prequalification_results=results,
            conditional_offer_details=offer_delivered(),
        ))

        assert_blocked(result, "FCHA_PREQUALIFICATION_INCOMPLETE")

    def test_blocked_reason_is_violation_message(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
        ))

        assert result.blocked_reason == result.decision.violations[0].message


class TestOfferToBackgroundCheck:
    """CONDITIONAL_OFFER -> BACKGROUND_CHECK_ALLOWED."""

    def test_allowed_with_signed_authorization(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED,
            background_check_authorization=authorization(),
        ))

        assert_allowed(result)

    @pytest.mark.parametrize("payload", [None, authorization(signed=False), {}])
    def test_unsigned_authorization_blocks(self, transition_gate, payload):
        result = transition_gate.gate(make_transition_request(
            S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED,
            background_check_authorization=payload,
        ))

        assert_blocked(result, "FCHA_NOTICE_NOT_ISSUED")


class TestAdverseFinding:
    """BACKGROUND_CHECK_ALLOWED -> INDIVIDUALIZED_ASSESSMENT."""

    def test_allowed_with_finding_and_notice(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(),
        ))

        assert_allowed(result)
        assert result.evidence.response_window.days_allowed == 10

    def test_response_window_dates(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(),
        ))

        window = result.evidence.response_window
        assert window.opens_at == FIXED_NOW
        assert window.closes_at == FIXED_NOW + timedelta(days=10)

    def test_notice_not_delivered_blocks(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(notice_delivered=False),
        ))

        assert_blocked(result, "FCHA_NOTICE_NOT_ISSUED")

    def test_no_adverse_finding_blocks(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(found=False),
        ))

        assert_blocked(result, "FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED")

    def test_response_window_follows_profile(self):
        """A jurisdiction with a different statutory window gets its own length."""
        gate = TransitionGate(
            registry=PolicyRegistry([make_profile(response_window_days=14)]),
            clock=lambda: FIXED_NOW,
            id_factory=sequential_ids(),
        )

        result = gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            market_id="testville",
            adverse_info_details=adverse_info(),
        ))

        assert_allowed(result)
        assert result.evidence.response_window.days_allowed == 14
        assert result.evidence.response_window.closes_at == FIXED_NOW + timedelta(days=14)


class TestFinalDecision:
    """Edges into APPROVED and DENIED."""

    @pytest.mark.parametrize("source", [S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT])
    def test_approval_with_rationale(self, transition_gate, source):
        result = transition_gate.gate(make_transition_request(
            source, S.APPROVED, final_decision=final_decision(),
        ))

        assert_allowed(result)

    @pytest.mark.parametrize("payload", [None, final_decision(rationale=""), final_decision(rationale="   ")])
    def test_missing_rationale_blocks(self, transition_gate, payload):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.APPROVED, final_decision=payload,
        ))

        assert_blocked(result, "FCHA_NOTICE_NOT_ISSUED")

    def test_denial_requires_article_23a_factors(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.INDIVIDUALIZED_ASSESSMENT, S.DENIED,
            final_decision=final_decision(decision="denied", rationale="Recent violent offense"),
        ))

        assert_blocked(result, "FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED")
        assert result.decision.violations[0].rule_reference == "NY Correction Law Article 23-A"

    def test_denial_with_factors_allowed(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.INDIVIDUALIZED_ASSESSMENT, S.DENIED,
            final_decision=final_decision(
                decision="denied",
                rationale="Offense directly related to safety of other tenants",
                factors=("nature_of_offense", "time_elapsed_since_offense"),
            ),
        ))

        assert_allowed(result)
        notices = [n.type for n in result.evidence.notices_issued]
        assert notices == [NoticeType.DENIAL_NOTICE]

    @pytest.mark.parametrize("source,target,submitted", [
        (S.BACKGROUND_CHECK_ALLOWED, S.APPROVED, "denied"),
        (S.INDIVIDUALIZED_ASSESSMENT, S.APPROVED, "denied"),
        (S.INDIVIDUALIZED_ASSESSMENT, S.DENIED, "approved"),
    ])
    def test_outcome_must_match_target(self, transition_gate, source, target, submitted):
        result = transition_gate.gate(make_transition_request(
            source, target,
            final_decision=final_decision(
                decision=submitted,
                rationale="Criminal record reviewed",
                factors=("nature_of_offense",),
            ),
        ))

        assert_blocked(result, "FCHA_NOTICE_NOT_ISSUED")
        evidence = result.decision.violations[0].evidence
        assert evidence["decision_provided"] == submitted
        assert evidence["expected_decision"] != submitted

    @pytest.mark.parametrize("outcome", [None, "", "maybe"])
    def test_missing_outcome_blocks(self, transition_gate, outcome):
        payload = final_decision()
        payload["decision"] = outcome

        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.APPROVED, final_decision=payload,
        ))

        assert_blocked(result, "FCHA_NOTICE_NOT_ISSUED")
        assert result.decision.recommended_fixes[0].action == "record_decision_outcome"

    def test_evidence_records_submitted_outcome(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.APPROVED,
            final_decision=final_decision(decision="APPROVED", rationale="  Clear check  "),
        ))

        assert_allowed(result)
        recorded = result.evidence.details["final_decision"]
        assert recorded["decision"] == "approved"
        assert recorded["rationale"] == "Clear check"


class TestMistypedPayloads:
    """Payload fields of the wrong type fail the prerequisite without raising."""

    @pytest.mark.parametrize("rationale", [123, ["written"], {"text": "x"}, True])
    def test_non_string_rationale_blocks(self, transition_gate, rationale):
        payload = final_decision()
        payload["rationale"] = rationale

        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.APPROVED, final_decision=payload,
        ))

        assert_blocked(result, "FCHA_NOTICE_NOT_ISSUED")

    @pytest.mark.parametrize("factors", [5, {"nature_of_offense": True}, [1, None, ""], 2.5])
    def test_unusable_factors_block_denial(self, transition_gate, factors):
        payload = final_decision(decision="denied", rationale="Recent violent offense")
        payload["article23AFactorsConsidered"] = factors
        del payload["article_23a_factors_considered"]

        result = transition_gate.gate(make_transition_request(
            S.INDIVIDUALIZED_ASSESSMENT, S.DENIED, final_decision=payload,
        ))

        assert_blocked(result, "FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED")

    def test_non_string_factors_are_dropped(self, transition_gate):
        payload = final_decision(decision="denied", rationale="Assessment completed")
        payload["article_23a_factors_considered"] = [7, "nature_of_offense", None]

        result = transition_gate.gate(make_transition_request(
            S.INDIVIDUALIZED_ASSESSMENT, S.DENIED, final_decision=payload,
        ))

        assert_allowed(result)
        recorded = result.evidence.details["final_decision"]
        assert recorded["article_23a_factors_considered"] == ["nature_of_offense"]

    def test_non_boolean_flags_are_not_met(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            prequalification_results=prequalified(income_verified="yes", credit_check_passed=1),
            conditional_offer_details={"offer_letter_delivered": "true"},
        ))

        assert_blocked(result, "FCHA_PREQUALIFICATION_INCOMPLETE")
        unmet = result.decision.violations[0].evidence["unmet_criteria"]
        assert unmet == ["income_verified", "credit_check_passed", "offer_letter_delivered"]

    def test_mistyped_text_fields_read_as_absent(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details={
                "adverse_info_found": True,
                "notice_delivered": True,
                "adverse_info_summary": ["not", "text"],
            },
        ))

        assert_allowed(result)
        assert result.evidence.details["background_check"]["adverse_info_summary"] is None


# =============================================================================
# Evidence
# =============================================================================

class TestEvidence:
    """Evidence records on passed transitions."""

    def test_evidence_fields(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            actor_id="user-42",
            actor_type=ActorType.USER,
            prequalification_results=prequalified(),
            conditional_offer_details=offer_delivered(),
        ))

        evidence = result.evidence
        assert evidence.transition_id == "fcha_test_0001"
        assert evidence.timestamp == FIXED_NOW
        assert evidence.actor_id == "user-42"
        assert evidence.actor_type == ActorType.USER
        assert evidence.from_state == S.PREQUALIFICATION
        assert evidence.to_state == S.CONDITIONAL_OFFER
        assert evidence.market_pack == "NYC_STRICT"
        assert evidence.response_window is None
        assert evidence.verify()

    def test_decision_metadata_carries_transition_id(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED,
            background_check_authorization=authorization(),
        ))

        metadata = result.decision.metadata
        assert metadata["transition_id"] == result.evidence.transition_id
        assert metadata["fcha_enforced"] is True
        assert metadata["application_id"] == "app-001"
        assert metadata["from_state"] == S.CONDITIONAL_OFFER
        assert metadata["to_state"] == S.BACKGROUND_CHECK_ALLOWED
        assert result.decision.checks_performed == ("fcha_workflow",)
        assert result.decision.policy_version == "1.0.0"
        assert result.decision.market_pack_version == "1.0.0"
        assert result.decision.checked_at == FIXED_NOW

    def test_offer_letter_notice_uses_payload_delivery_method(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
            prequalification_results=prequalified(),
            conditional_offer_details=offer_delivered(),
        ))

        (notice,) = result.evidence.notices_issued
        assert notice.type == NoticeType.CONDITIONAL_OFFER_LETTER
        assert notice.delivery_method == DeliveryMethod.EMAIL
        assert notice.recipient_id == "app-001"

    def test_adverse_notices_recorded(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(),
        ))

        types = [n.type for n in result.evidence.notices_issued]
        assert types == [NoticeType.ADVERSE_ACTION_NOTICE, NoticeType.ARTICLE_23A_FACTORS_NOTICE]
        assessment = result.evidence.details["individualized_assessment"]
        assert "evidence_of_rehabilitation" in assessment["article_23a_factors"]

    def test_evidence_to_dict_is_plain(self, transition_gate):
        result = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(),
        ))

        data = result.to_dict()
        assert data["allowed"] is True
        assert data["evidence"]["response_window"]["days_allowed"] == 10
        assert data["evidence"]["from_state"] == "BACKGROUND_CHECK_ALLOWED"
        assert data["evidence"]["content_hash"] == result.evidence.content_hash

    def test_transition_ids_are_fresh(self, transition_gate):
        request = make_transition_request(
            S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED,
            background_check_authorization=authorization(),
        )

        first = transition_gate.gate(request)
        second = transition_gate.gate(request)

        assert first.evidence.transition_id != second.evidence.transition_id


# =============================================================================
# End-to-end
# =============================================================================

class TestWorkflowPaths:
    """Full paths through the NYC workflow."""

    def test_happy_path(self, transition_gate, check_gate):
        steps = [
            make_transition_request(
                S.PREQUALIFICATION, S.CONDITIONAL_OFFER,
                prequalification_results=prequalified(),
                conditional_offer_details=offer_delivered(),
            ),
            make_transition_request(
                S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED,
                background_check_authorization=authorization(),
            ),
        ]
        for request in steps:
            assert_allowed(transition_gate.gate(request))

        check = check_gate.gate(make_check_request(S.BACKGROUND_CHECK_ALLOWED))
        assert_allowed(check)

        approval = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.APPROVED, final_decision=final_decision(),
        ))
        assert_allowed(approval)
        assert approval.evidence.to_state == S.APPROVED

    def test_adverse_path_to_denial(self, transition_gate):
        assessment = transition_gate.gate(make_transition_request(
            S.BACKGROUND_CHECK_ALLOWED, S.INDIVIDUALIZED_ASSESSMENT,
            adverse_info_details=adverse_info(),
        ))
        denial = transition_gate.gate(make_transition_request(
            S.INDIVIDUALIZED_ASSESSMENT, S.DENIED,
            final_decision=final_decision(
                decision="denied",
                rationale="Assessment completed",
                factors=("nature_of_offense",),
            ),
        ))

        assert_allowed(assessment)
        assert_allowed(denial)


# =============================================================================
# Unenforced Markets and Determinism
# =============================================================================

class TestUnenforcedMarkets:
    """Markets whose profile does not require the gate."""

    @pytest.mark.parametrize("market_id", ["AUSTIN", "los_angeles", "US", "boston"])
    @pytest.mark.parametrize("source,target", [
        (S.PREQUALIFICATION, S.BACKGROUND_CHECK_ALLOWED),
        (S.APPROVED, S.PREQUALIFICATION),
        (S.PREQUALIFICATION, S.DENIED),
    ])
    def test_any_transition_allowed(self, transition_gate, market_id, source, target):
        result = transition_gate.gate(make_transition_request(
            source, target, market_id=market_id,
        ))

        assert_allowed(result)
        assert result.evidence is None
        assert result.decision.metadata["fcha_enforced"] is False
        assert result.decision.checks_performed == ("fcha_workflow",)


class TestDeterminism:
    """Same policy and input give the same outcome."""

    @pytest.mark.parametrize("source,target,payloads", [
        (S.PREQUALIFICATION, S.BACKGROUND_CHECK_ALLOWED, {}),
        (S.PREQUALIFICATION, S.CONDITIONAL_OFFER, {"prequalification_results": prequalified()}),
        (S.CONDITIONAL_OFFER, S.BACKGROUND_CHECK_ALLOWED,
         {"background_check_authorization": authorization()}),
    ])
    def test_repeated_calls_agree(self, registry, source, target, payloads):
        gate = TransitionGate(registry=registry)
        request = make_transition_request(source, target, **payloads)

        results = [gate.gate(request) for _ in range(3)]

        assert len({r.decision.passed for r in results}) == 1
        assert len({tuple(r.decision.violation_codes) for r in results}) == 1
        assert len({r.blocked_reason for r in results}) == 1
