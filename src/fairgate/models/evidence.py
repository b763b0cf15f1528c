"""
FairGate Evidence Records

An EvidenceRecord is emitted only for a transition that passed an enforced
gate. It is the audit artifact proving the transition was checked: the
caller forwards it to the append-only audit sink unchanged.

Key components:
- NoticeIssued: A notice the transition records as given to the applicant
- ResponseWindow: The applicant's statutory response period
- EvidenceRecord: The full record, with a content hash over its fields
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..canon import content_hash as _content_hash
from .decision import to_plain
from .enums import ActorType, DeliveryMethod, NoticeType, WorkflowState


@dataclass(frozen=True)
class NoticeIssued:
    """A notice delivered as part of a transition."""
    type: NoticeType
    issued_at: datetime
    recipient_id: str
    delivery_method: Optional[DeliveryMethod] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "issued_at": self.issued_at.isoformat(),
            "recipient_id": self.recipient_id,
            "delivery_method": self.delivery_method.value if self.delivery_method else None,
        }


@dataclass(frozen=True)
class ResponseWindow:
    """
    Period during which the applicant may respond with mitigating factors.

    closes_at is opens_at plus days_allowed calendar days.
    """
    days_allowed: int
    opens_at: datetime
    closes_at: datetime
    purpose: str = "Applicant may provide mitigating factors and evidence of rehabilitation"

    def to_dict(self) -> dict[str, Any]:
        return {
            "days_allowed": self.days_allowed,
            "opens_at": self.opens_at.isoformat(),
            "closes_at": self.closes_at.isoformat(),
            "purpose": self.purpose,
        }


@dataclass(frozen=True)
class EvidenceRecord:
    """
    Immutable, timestamped proof that a transition was permitted.

    Attributes:
        transition_id: Fresh identifier for this transition
        timestamp: When the gate evaluated the transition
        actor_id / actor_type: Who requested it
        from_state / to_state: The edge taken
        notices_issued: Notices recorded for the edge (None when the edge
            records none)
        response_window: Set when the edge opens a response period
        application_id, market_pack, policy_version: Audit context
        details: Edge-specific summaries (prequalification results,
            background check outcome, individualized assessment start)
        content_hash: SHA-256 over the canonical JSON of every other field
    """
    transition_id: str
    timestamp: datetime
    actor_id: str
    actor_type: ActorType
    from_state: WorkflowState
    to_state: WorkflowState
    application_id: str
    market_pack: str
    policy_version: str
    notices_issued: Optional[tuple[NoticeIssued, ...]] = None
    response_window: Optional[ResponseWindow] = None
    details: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    content_hash: str = field(default="", init=False)

    def __post_init__(self) -> None:
        if self.notices_issued is not None:
            object.__setattr__(self, "notices_issued", tuple(self.notices_issued))
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))
        object.__setattr__(self, "content_hash", _content_hash(self._hashable()))

    def _hashable(self) -> dict[str, Any]:
        return {
            "transition_id": self.transition_id,
            "timestamp": self.timestamp.isoformat(),
            "actor_id": self.actor_id,
            "actor_type": self.actor_type.value,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "application_id": self.application_id,
            "market_pack": self.market_pack,
            "policy_version": self.policy_version,
            "notices_issued": (
                [n.to_dict() for n in self.notices_issued]
                if self.notices_issued is not None else None
            ),
            "response_window": self.response_window.to_dict() if self.response_window else None,
            "details": to_plain(self.details),
        }

    def verify(self) -> bool:
        """Check the stored hash still matches the record's fields."""
        return self.content_hash == _content_hash(self._hashable())

    def to_dict(self) -> dict[str, Any]:
        result = self._hashable()
        result["content_hash"] = self.content_hash
        return result
