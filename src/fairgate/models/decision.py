"""
FairGate Decision Models

Value types returned by every gate.

Key components:
- Violation: A single rule failure with its statutory citation
- RecommendedFix: What the caller can do to clear a violation
- Decision: The compliance decision for one gate call
- GateResult / TransitionGateResult: allowed flag, decision, optional evidence

All types are frozen. Mapping fields are wrapped in read-only proxies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from .enums import FixPriority, Severity, ViolationCode

if TYPE_CHECKING:
    from .evidence import EvidenceRecord


def to_plain(value: Any) -> Any:
    """Convert proxies, tuples and enums into JSON-friendly values."""
    if isinstance(value, Mapping):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, frozenset, set)):
        items = [to_plain(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


# =============================================================================
# Violation
# =============================================================================

@dataclass(frozen=True)
class Violation:
    """
    A rule the request failed.

    Attributes:
        code: Closed violation code
        message: Human-readable explanation
        severity: Only CRITICAL violations block
        evidence: Free-form context (check_type, current_state, ...)
        rule_reference: Statute/section the rule comes from
        documentation_url: Where the rule is explained
    """
    code: ViolationCode
    message: str
    severity: Severity = Severity.CRITICAL
    evidence: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    rule_reference: Optional[str] = None
    documentation_url: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "evidence", MappingProxyType(dict(self.evidence)))

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.CRITICAL

    def with_code(self, code: ViolationCode) -> "Violation":
        """Copy of this violation under a different code."""
        return Violation(
            code=code,
            message=self.message,
            severity=self.severity,
            evidence=self.evidence,
            rule_reference=self.rule_reference,
            documentation_url=self.documentation_url,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
            "evidence": to_plain(self.evidence),
        }
        if self.rule_reference:
            result["rule_reference"] = self.rule_reference
        if self.documentation_url:
            result["documentation_url"] = self.documentation_url
        return result


@dataclass(frozen=True)
class RecommendedFix:
    """Remediation the caller can take before retrying."""
    action: str
    description: str
    priority: FixPriority = FixPriority.CRITICAL
    auto_fix_available: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "description": self.description,
            "priority": self.priority.value,
            "auto_fix_available": self.auto_fix_available,
        }


# =============================================================================
# Decision
# =============================================================================

@dataclass(frozen=True)
class Decision:
    """
    Compliance decision for a single gate call.

    passed is True exactly when no violation is blocking.
    """
    passed: bool
    violations: tuple[Violation, ...]
    checks_performed: tuple[str, ...]
    policy_version: str
    market_pack: str
    market_pack_version: str
    checked_at: datetime
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    recommended_fixes: tuple[RecommendedFix, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "violations", tuple(self.violations))
        object.__setattr__(self, "checks_performed", tuple(self.checks_performed))
        object.__setattr__(self, "recommended_fixes", tuple(self.recommended_fixes))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def violation_codes(self) -> list[str]:
        return [v.code.value for v in self.violations]

    @property
    def blocking_violations(self) -> list[Violation]:
        return [v for v in self.violations if v.is_blocking]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "violations": [v.to_dict() for v in self.violations],
            "recommended_fixes": [f.to_dict() for f in self.recommended_fixes],
            "checks_performed": list(self.checks_performed),
            "policy_version": self.policy_version,
            "market_pack": self.market_pack,
            "market_pack_version": self.market_pack_version,
            "checked_at": self.checked_at.isoformat(),
            "metadata": to_plain(self.metadata),
        }


def build_decision(
    *,
    violations: Iterable[Violation],
    checks_performed: Iterable[str],
    policy_version: str,
    market_pack: str,
    market_pack_version: str,
    checked_at: datetime,
    metadata: Mapping[str, Any],
    recommended_fixes: Iterable[RecommendedFix] = (),
) -> Decision:
    """Assemble a Decision, deriving passed from the violation severities."""
    violations = tuple(violations)
    return Decision(
        passed=not any(v.is_blocking for v in violations),
        violations=violations,
        checks_performed=tuple(checks_performed),
        policy_version=policy_version,
        market_pack=market_pack,
        market_pack_version=market_pack_version,
        checked_at=checked_at,
        metadata=metadata,
        recommended_fixes=tuple(recommended_fixes),
    )


# =============================================================================
# Gate Results
# =============================================================================

@dataclass(frozen=True)
class GateResult:
    """Outcome of a check gate or legacy gate call."""
    allowed: bool
    decision: Decision
    blocked_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "allowed": self.allowed,
            "decision": self.decision.to_dict(),
        }
        if self.blocked_reason:
            result["blocked_reason"] = self.blocked_reason
        return result


@dataclass(frozen=True)
class TransitionGateResult(GateResult):
    """Outcome of a transition gate call; evidence only when the transition passed."""
    evidence: Optional["EvidenceRecord"] = None

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.evidence is not None:
            result["evidence"] = self.evidence.to_dict()
        return result
