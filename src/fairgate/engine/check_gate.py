"""
FairGate Check Gate

Decides whether a screening operation (criminal history, credit, income,
...) may run given the application's current workflow state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Union

from ..models import CheckRequest, GateResult, build_decision
from .registry import PolicyRegistry, ReloadableRegistry
from .rules import evaluate_check
from .transition_gate import log_extra, utc_now


logger = logging.getLogger(__name__)

CHECK = "fcha_check"
CRIMINAL_CHECK = "fcha_criminal_check"


@dataclass
class CheckGate:
    """
    Gate for screening checks.

    Usage:
        gate = CheckGate(registry=registry)
        result = gate.gate(CheckRequest(
            application_id="app-1",
            market_id="NYC",
            current_state=WorkflowState.PREQUALIFICATION,
            check_type="criminal_background_check",
            actor_id="user-1",
        ))
        assert not result.allowed
    """
    registry: Union[PolicyRegistry, ReloadableRegistry]
    clock: Callable[[], datetime] = field(default=utc_now)

    def gate(self, request: CheckRequest) -> GateResult:
        profile = self.registry.lookup(request.market_id)
        metadata: dict[str, Any] = {
            "application_id": request.application_id,
            "check_type": request.check_type,
            "current_state": request.current_state,
            "fcha_enforced": profile.requires_gate,
        }

        if not profile.requires_gate:
            decision = build_decision(
                violations=(),
                checks_performed=(CHECK,),
                policy_version=profile.policy_version,
                market_pack=profile.market_pack_id,
                market_pack_version=profile.market_pack_version,
                checked_at=self.clock(),
                metadata=metadata,
            )
            return GateResult(allowed=True, decision=decision)

        evaluation = evaluate_check(profile, request.check_type, request.current_state)
        metadata["classification"] = evaluation.classification

        checks = [CHECK]
        if evaluation.restricted and evaluation.allowed:
            checks.append(CRIMINAL_CHECK)

        decision = build_decision(
            violations=evaluation.violations,
            checks_performed=checks,
            policy_version=profile.policy_version,
            market_pack=profile.market_pack_id,
            market_pack_version=profile.market_pack_version,
            checked_at=self.clock(),
            metadata=metadata,
            recommended_fixes=evaluation.fixes,
        )

        if not decision.passed:
            logger.info(
                "Check blocked: application=%s market_pack=%s check=%s state=%s codes=%s",
                request.application_id, profile.market_pack_id, request.check_type,
                request.current_state.value, ",".join(decision.violation_codes),
                extra=log_extra(request.application_id, profile, decision),
            )
            return GateResult(
                allowed=False,
                decision=decision,
                blocked_reason=(
                    f"check blocked: {request.check_type} not permitted in "
                    f"{request.current_state.value}"
                ),
            )

        return GateResult(allowed=True, decision=decision)
