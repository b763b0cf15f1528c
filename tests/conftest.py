"""
Pytest configuration and fixtures for FairGate tests.

Provides request factories and gates wired to the shipped market packs
with a fixed clock and deterministic transition ids.
"""
import itertools
from datetime import datetime, timezone

import pytest

from fairgate.engine import (
    CheckGate,
    LegacyGateAdapter,
    PolicyRegistry,
    TransitionGate,
    load_default_registry,
)
from fairgate.models import (
    ActorType,
    CheckClassification,
    CheckRequest,
    CheckType,
    LegacyBackgroundCheckRequest,
    LegacyStageTransitionRequest,
    MarketPolicyProfile,
    NoticeConfig,
    NoticeType,
    TransitionRequest,
    UnknownMarketMode,
    WorkflowState,
)


FIXED_NOW = datetime(2025, 3, 3, 15, 0, 0, tzinfo=timezone.utc)

RESTRICTED_CHECKS = [
    "criminal_background_check",
    "criminal_history",
    "arrest_record",
    "conviction_record",
]

UNRESTRICTED_CHECKS = [
    "income_verification",
    "credit_check",
    "rental_history",
    "employment_verification",
    "eviction_history",
]


# =============================================================================
# Payload Factories
# =============================================================================

def prequalified(**overrides) -> dict:
    """Prequalification results with every criterion met."""
    results = {
        "income_verified": True,
        "credit_check_passed": True,
        "rental_history_verified": True,
        "employment_verified": True,
    }
    results.update(overrides)
    return results


def offer_delivered(delivered: bool = True, unit_id: str = "unit-4B") -> dict:
    return {"unit_id": unit_id, "offer_letter_delivered": delivered, "delivery_method": "email"}


def authorization(signed: bool = True) -> dict:
    return {"authorization_signed": signed, "signed_at": "2025-03-02T10:00:00Z"}


def adverse_info(found: bool = True, notice_delivered: bool = True) -> dict:
    return {
        "adverse_info_found": found,
        "notice_delivered": notice_delivered,
        "adverse_info_summary": "2015 misdemeanor conviction",
    }


def final_decision(
    decision: str = "approved",
    rationale: str = "All criteria met",
    factors: tuple = (),
) -> dict:
    return {
        "decision": decision,
        "rationale": rationale,
        "article_23a_factors_considered": list(factors),
    }


# =============================================================================
# Request Factories
# =============================================================================

def make_transition_request(
    current_state,
    target_state,
    market_id: str = "NYC",
    application_id: str = "app-001",
    actor_id: str = "agent-7",
    actor_type=ActorType.AGENT,
    **payloads,
) -> TransitionRequest:
    """Create a TransitionRequest; payloads are passed as plain dicts."""
    return TransitionRequest(
        application_id=application_id,
        market_id=market_id,
        current_state=current_state,
        target_state=target_state,
        actor_id=actor_id,
        actor_type=actor_type,
        **payloads,
    )


def make_check_request(
    current_state,
    check_type: str = "criminal_background_check",
    market_id: str = "NYC",
    application_id: str = "app-001",
    actor_id: str = "agent-7",
) -> CheckRequest:
    return CheckRequest(
        application_id=application_id,
        market_id=market_id,
        current_state=current_state,
        check_type=check_type,
        actor_id=actor_id,
    )


def make_legacy_check_request(
    current_stage: str,
    check_type: str = "criminal_background_check",
    market_id: str = "nyc",
    application_id: str = "app-001",
) -> LegacyBackgroundCheckRequest:
    return LegacyBackgroundCheckRequest(
        application_id=application_id,
        market_id=market_id,
        current_stage=current_stage,
        check_type=check_type,
    )


def make_legacy_stage_request(
    current_stage: str,
    target_stage: str,
    market_id: str = "nyc",
    application_id: str = "app-001",
) -> LegacyStageTransitionRequest:
    return LegacyStageTransitionRequest(
        application_id=application_id,
        market_id=market_id,
        current_stage=current_stage,
        target_stage=target_stage,
    )


def make_profile(
    market_id: str = "TESTVILLE",
    response_window_days: int = 14,
    requires_gate: bool = True,
) -> MarketPolicyProfile:
    """Small enforced profile built in code rather than from a pack."""
    prequal = WorkflowState.PREQUALIFICATION
    offer = WorkflowState.CONDITIONAL_OFFER
    allowed = WorkflowState.BACKGROUND_CHECK_ALLOWED
    assessment = WorkflowState.INDIVIDUALIZED_ASSESSMENT
    return MarketPolicyProfile(
        market_id=market_id,
        requires_gate=requires_gate,
        market_pack_id="TESTVILLE_PACK",
        market_pack_version="2.1.0",
        policy_version="1.1.0",
        transition_graph={
            prequal: {offer},
            offer: {allowed},
            allowed: {assessment, WorkflowState.APPROVED},
            assessment: {WorkflowState.APPROVED, WorkflowState.DENIED},
        },
        prerequisite_validators={
            (prequal, offer): "prequalification_complete",
            (offer, allowed): "background_check_authorized",
            (allowed, assessment): "adverse_notice_delivered",
        },
        check_classifier={
            CheckType(c): CheckClassification.RESTRICTED for c in RESTRICTED_CHECKS
        },
        notice_config={
            (allowed, assessment): NoticeConfig(
                notices=(NoticeType.ADVERSE_ACTION_NOTICE,),
                opens_response_window=True,
            ),
        },
        response_window_days=response_window_days,
        rule_reference="Testville Code § 1",
    )


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"fcha_test_{next(counter):04d}"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def registry() -> PolicyRegistry:
    """Registry built from the packs shipped with the package (fail open)."""
    return load_default_registry()


@pytest.fixture(scope="session")
def closed_registry() -> PolicyRegistry:
    return load_default_registry(unknown_market_mode=UnknownMarketMode.FAIL_CLOSED)


@pytest.fixture
def transition_gate(registry) -> TransitionGate:
    return TransitionGate(registry=registry, clock=lambda: FIXED_NOW, id_factory=sequential_ids())


@pytest.fixture
def check_gate(registry) -> CheckGate:
    return CheckGate(registry=registry, clock=lambda: FIXED_NOW)


@pytest.fixture
def legacy_adapter(registry) -> LegacyGateAdapter:
    return LegacyGateAdapter(registry=registry, clock=lambda: FIXED_NOW)
