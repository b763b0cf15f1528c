"""
FairGate Transition Gate

Decides whether an application may move between workflow states and, when
it may, produces the evidence record proving the move was checked.

Policy outcomes are returned, never raised: an invalid edge or a failed
prerequisite is a blocked TransitionGateResult.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from ..models import (
    DeliveryMethod,
    EvidenceRecord,
    MarketPolicyProfile,
    NoticeIssued,
    NoticeType,
    ResponseWindow,
    TransitionGateResult,
    TransitionRequest,
    build_decision,
)
from .registry import PolicyRegistry, ReloadableRegistry
from .rules import evaluate_transition


logger = logging.getLogger(__name__)

WORKFLOW_CHECK = "fcha_workflow"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_transition_id() -> str:
    return f"fcha_{uuid.uuid4().hex}"


@dataclass
class TransitionGate:
    """
    Gate for workflow state transitions.

    Usage:
        gate = TransitionGate(registry=load_default_registry())
        result = gate.gate(TransitionRequest.from_dict(payload))

        if result.allowed:
            audit_sink.append(result.evidence.to_dict())
        else:
            print(result.blocked_reason, result.decision.violation_codes)

    clock and id_factory are injectable so tests get stable timestamps and
    transition ids.
    """
    registry: Union[PolicyRegistry, ReloadableRegistry]
    clock: Callable[[], datetime] = field(default=utc_now)
    id_factory: Callable[[], str] = field(default=new_transition_id)

    def gate(self, request: TransitionRequest) -> TransitionGateResult:
        profile = self.registry.lookup(request.market_id)
        checked_at = self.clock()
        metadata: dict[str, Any] = {
            "application_id": request.application_id,
            "from_state": request.current_state,
            "to_state": request.target_state,
            "fcha_enforced": profile.requires_gate,
        }

        if not profile.requires_gate:
            decision = build_decision(
                violations=(),
                checks_performed=(WORKFLOW_CHECK,),
                policy_version=profile.policy_version,
                market_pack=profile.market_pack_id,
                market_pack_version=profile.market_pack_version,
                checked_at=checked_at,
                metadata=metadata,
            )
            return TransitionGateResult(allowed=True, decision=decision)

        outcome = evaluate_transition(profile, request)

        if not outcome.passed:
            decision = build_decision(
                violations=outcome.violations,
                checks_performed=(WORKFLOW_CHECK,),
                policy_version=profile.policy_version,
                market_pack=profile.market_pack_id,
                market_pack_version=profile.market_pack_version,
                checked_at=checked_at,
                metadata=metadata,
                recommended_fixes=outcome.fixes,
            )
            blocked_reason = self._blocked_reason(request, profile, decision)
            logger.info(
                "Transition blocked: application=%s market_pack=%s %s -> %s codes=%s",
                request.application_id, profile.market_pack_id,
                request.current_state.value, request.target_state.value,
                ",".join(decision.violation_codes),
                extra=log_extra(request.application_id, profile, decision),
            )
            return TransitionGateResult(
                allowed=False,
                decision=decision,
                blocked_reason=blocked_reason,
            )

        transition_id = self.id_factory()
        metadata["transition_id"] = transition_id
        decision = build_decision(
            violations=outcome.violations,
            checks_performed=(WORKFLOW_CHECK,),
            policy_version=profile.policy_version,
            market_pack=profile.market_pack_id,
            market_pack_version=profile.market_pack_version,
            checked_at=checked_at,
            metadata=metadata,
            recommended_fixes=outcome.fixes,
        )
        evidence = self._evidence(request, profile, transition_id, checked_at, outcome.details)
        logger.debug(
            "Transition allowed: application=%s %s -> %s transition_id=%s",
            request.application_id, request.current_state.value,
            request.target_state.value, transition_id,
        )
        return TransitionGateResult(allowed=True, decision=decision, evidence=evidence)

    def _blocked_reason(self, request, profile, decision) -> str:
        if not profile.has_edge(request.current_state, request.target_state):
            return (
                f"transition blocked: {request.current_state.value} → "
                f"{request.target_state.value} not permitted"
            )
        return decision.blocking_violations[0].message

    def _evidence(
        self,
        request: TransitionRequest,
        profile: MarketPolicyProfile,
        transition_id: str,
        timestamp: datetime,
        details: Any,
    ) -> EvidenceRecord:
        edge = (request.current_state, request.target_state)
        config = profile.notices_for(edge)

        notices: Optional[tuple[NoticeIssued, ...]] = None
        if config.notices:
            notices = tuple(
                NoticeIssued(
                    type=notice,
                    issued_at=timestamp,
                    recipient_id=request.application_id,
                    delivery_method=_delivery_method(notice, request),
                )
                for notice in config.notices
            )

        window = None
        if config.opens_response_window:
            window = ResponseWindow(
                days_allowed=profile.response_window_days,
                opens_at=timestamp,
                closes_at=timestamp + timedelta(days=profile.response_window_days),
            )

        record_details = dict(details)
        if config.opens_response_window:
            record_details["individualized_assessment"] = {
                "started_at": timestamp,
                "article_23a_factors": list(profile.article_23a_factors),
            }

        return EvidenceRecord(
            transition_id=transition_id,
            timestamp=timestamp,
            actor_id=request.actor_id,
            actor_type=request.actor_type,
            from_state=request.current_state,
            to_state=request.target_state,
            application_id=request.application_id,
            market_pack=profile.market_pack_id,
            policy_version=profile.policy_version,
            notices_issued=notices,
            response_window=window,
            details=record_details,
        )


def _delivery_method(notice: NoticeType, request: TransitionRequest) -> DeliveryMethod:
    if notice == NoticeType.CONDITIONAL_OFFER_LETTER:
        offer = request.conditional_offer_details
        if offer is not None and offer.delivery_method is not None:
            return offer.delivery_method
    if notice == NoticeType.BACKGROUND_CHECK_AUTHORIZATION:
        return DeliveryMethod.IN_APP
    return DeliveryMethod.EMAIL


def log_extra(application_id: str, profile: MarketPolicyProfile, decision: Any) -> dict[str, Any]:
    return {
        "application_id": application_id,
        "market_id": profile.market_id,
        "market_pack": profile.market_pack_id,
        "policy_version": profile.policy_version,
        "violation_codes": decision.violation_codes,
    }
