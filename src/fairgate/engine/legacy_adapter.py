"""
FairGate Legacy Gate Adapter

Serves callers that still speak in stage names (initial_inquiry ...
lease_signing) instead of workflow states.

The adapter owns no rules. Stages are mapped to workflow states through the
market profile, the shared rule functions decide, and violation codes are
translated to their legacy names on the way out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Union

from ..models import (
    GateResult,
    LegacyBackgroundCheckRequest,
    LegacyStageTransitionRequest,
    MarketPolicyProfile,
    RecommendedFix,
    Violation,
    ViolationCode,
    build_decision,
)
from .prerequisites import cite
from .registry import PolicyRegistry, ReloadableRegistry
from .rules import evaluate_check, evaluate_stage_order, legacy_stage_state
from .transition_gate import log_extra, utc_now


logger = logging.getLogger(__name__)

LEGACY_CRIMINAL_CHECK = "fcha_criminal_check"
LEGACY_STAGE_CHECK = "fcha_stage"

LEGACY_CODES: Mapping[ViolationCode, ViolationCode] = MappingProxyType({
    ViolationCode.FCHA_BACKGROUND_CHECK_NOT_ALLOWED: ViolationCode.FCHA_CRIMINAL_CHECK_BEFORE_OFFER,
    ViolationCode.FCHA_INVALID_STATE_TRANSITION: ViolationCode.FCHA_STAGE_ORDER_VIOLATION,
})


def to_legacy(violations: Iterable[Violation]) -> tuple[Violation, ...]:
    """Rename modern codes to the codes legacy callers expect."""
    return tuple(
        v.with_code(LEGACY_CODES[v.code]) if v.code in LEGACY_CODES else v
        for v in violations
    )


def _normalize_stage(stage: str) -> str:
    return str(stage).strip().lower()


@dataclass
class LegacyGateAdapter:
    """
    Stage-named gates backed by the workflow rule table.

    A restricted check passes only at a stage the pack maps to the unlock
    state (background_check in NYC). Stage-based callers used to run them at
    any stage from conditional_offer on; conditional_offer, final_approval
    and lease_signing now block, because those stages map to states other
    than BACKGROUND_CHECK_ALLOWED.

    Usage:
        adapter = LegacyGateAdapter(registry=registry)
        result = adapter.gate_background_check(LegacyBackgroundCheckRequest(
            application_id="app-1",
            market_id="nyc",
            current_stage="application_review",
            check_type="criminal_background_check",
        ))
        # blocked with FCHA_CRIMINAL_CHECK_BEFORE_OFFER
    """
    registry: Union[PolicyRegistry, ReloadableRegistry]
    clock: Callable[[], datetime] = field(default=utc_now)

    def gate_background_check(self, request: LegacyBackgroundCheckRequest) -> GateResult:
        profile = self.registry.lookup(request.market_id)
        stage = _normalize_stage(request.current_stage)
        metadata: dict[str, Any] = {
            "application_id": request.application_id,
            "check_type": request.check_type,
            "current_stage": stage,
            "fcha_enforced": profile.requires_gate,
        }
        if not profile.requires_gate:
            return self._result(profile, (), (), (LEGACY_CRIMINAL_CHECK,), metadata)

        state = legacy_stage_state(profile, stage)
        if state is None:
            violation, fix = self._unknown_stage(profile, stage)
            return self._result(
                profile, (violation,), (fix,), (LEGACY_CRIMINAL_CHECK,), metadata,
                blocked_reason=f"check blocked: unknown stage {stage}",
            )

        metadata["current_state"] = state
        evaluation = evaluate_check(profile, request.check_type, state)
        return self._result(
            profile,
            to_legacy(evaluation.violations),
            evaluation.fixes,
            (LEGACY_CRIMINAL_CHECK,),
            metadata,
            blocked_reason=f"check blocked: {request.check_type} not permitted at stage {stage}",
        )

    def gate_stage_transition(self, request: LegacyStageTransitionRequest) -> GateResult:
        profile = self.registry.lookup(request.market_id)
        current_stage = _normalize_stage(request.current_stage)
        target_stage = _normalize_stage(request.target_stage)
        metadata: dict[str, Any] = {
            "application_id": request.application_id,
            "from_stage": current_stage,
            "to_stage": target_stage,
            "fcha_enforced": profile.requires_gate,
        }
        if not profile.requires_gate:
            return self._result(profile, (), (), (LEGACY_STAGE_CHECK,), metadata)

        violations, fixes = evaluate_stage_order(profile, current_stage, target_stage)
        return self._result(
            profile,
            to_legacy(violations),
            fixes,
            (LEGACY_STAGE_CHECK,),
            metadata,
            blocked_reason=f"stage transition blocked: {current_stage} → {target_stage}",
        )

    def _unknown_stage(self, profile: MarketPolicyProfile, stage: str) -> tuple[Violation, RecommendedFix]:
        order = [s.value for s in profile.legacy_stage_order]
        violation = Violation(
            code=ViolationCode.FCHA_STAGE_ORDER_VIOLATION,
            message=f"Unknown stage: {stage}",
            evidence={"current_stage": stage, "stage_order": order},
            rule_reference=cite(profile),
            documentation_url=profile.documentation_url,
        )
        fix = RecommendedFix(
            action="use_known_stage",
            description=f"Use one of: {', '.join(order) or 'no stages configured'}",
        )
        return violation, fix

    def _result(
        self,
        profile: MarketPolicyProfile,
        violations: Iterable[Violation],
        fixes: Iterable[RecommendedFix],
        checks: Iterable[str],
        metadata: dict[str, Any],
        blocked_reason: str = "",
    ) -> GateResult:
        decision = build_decision(
            violations=violations,
            checks_performed=checks,
            policy_version=profile.policy_version,
            market_pack=profile.market_pack_id,
            market_pack_version=profile.market_pack_version,
            checked_at=self.clock(),
            metadata=metadata,
            recommended_fixes=fixes,
        )
        if decision.passed:
            return GateResult(allowed=True, decision=decision)

        logger.info(
            "Legacy gate blocked: application=%s market_pack=%s codes=%s",
            metadata["application_id"], profile.market_pack_id,
            ",".join(decision.violation_codes),
            extra=log_extra(metadata["application_id"], profile, decision),
        )
        return GateResult(allowed=False, decision=decision, blocked_reason=blocked_reason)
