"""
FairGate Request Models

Inputs accepted by the gates.

Top-level identifiers and states are validated at construction: a missing or
non-string identifier, or a state outside the closed set, raises
RequestValidationError. Edge payloads are tolerant: a field may be absent or
of the wrong type, and such a field reads as absent, so it fails the edge's
prerequisite instead of raising.

from_dict() accepts snake_case or camelCase keys so JSON produced by older
callers can be passed through unchanged.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from ..exceptions import RequestValidationError
from .enums import (
    ActorType,
    CheckType,
    DeliveryMethod,
    FinalDecisionType,
    LegacyStage,
    WorkflowState,
)


E = TypeVar("E", bound=Enum)
P = TypeVar("P")

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def _snake(key: str) -> str:
    # "article23AFactors" splits as "article23_a_factors"; keep the statute
    # number attached to its letter.
    key = _CAMEL_BOUNDARY.sub(r"\1_\2", _ACRONYM_BOUNDARY.sub(r"\1_\2", key))
    return key.lower().replace("article23_a", "article_23a")


def _normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_snake(str(k)): v for k, v in data.items()}


def _coerce_enum(enum_type: Type[E], value: Any, field_name: str) -> E:
    if isinstance(value, enum_type):
        return value
    candidates = [value]
    if isinstance(value, str):
        candidates += [value.strip().upper(), value.strip().lower()]
    for candidate in candidates:
        try:
            return enum_type(candidate)
        except ValueError:
            continue
    allowed = ", ".join(m.value for m in enum_type)
    raise RequestValidationError(
        message=f"Invalid {field_name}: {value!r}",
        details={"field": field_name, "value": value, "allowed": allowed},
    )


def _optional_enum(enum_type: Type[E], value: Any) -> Optional[E]:
    if value is None or isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        value = value.strip().lower()
    try:
        return enum_type(value)
    except (ValueError, TypeError):
        return None


def _require(data: Mapping[str, Any], names: tuple[str, ...], request_type: str) -> None:
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        raise RequestValidationError(
            message=f"{request_type} missing required field(s): {', '.join(missing)}",
            details={"missing": missing, "request_type": request_type},
        )
    # Enum members pass: every request enum is a str subclass.
    not_text = [n for n in names if not isinstance(data[n], str)]
    if not_text:
        raise RequestValidationError(
            message=f"{request_type} field(s) must be strings: {', '.join(not_text)}",
            details={"not_text": not_text, "request_type": request_type},
        )


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _texts(value: Any) -> tuple[str, ...]:
    """A string or a list of strings; anything else reads as empty."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item for item in value if isinstance(item, str) and item.strip())


def _payload(payload_type: Type[P], value: Any) -> Optional[P]:
    """Build an optional payload; non-mapping garbage is treated as absent."""
    if value is None or isinstance(value, payload_type):
        return value
    if not isinstance(value, Mapping):
        return None
    data = _normalize_keys(value)
    known = {f.name for f in fields(payload_type)}  # type: ignore[arg-type]
    return payload_type(**{k: v for k, v in data.items() if k in known})


# =============================================================================
# Edge Payloads
# =============================================================================

@dataclass(frozen=True)
class PrequalificationResults:
    """Non-criminal eligibility checks completed before a conditional offer."""
    income_verified: Optional[bool] = None
    credit_check_passed: Optional[bool] = None
    rental_history_verified: Optional[bool] = None
    employment_verified: Optional[bool] = None

    @property
    def all_criteria_met(self) -> bool:
        return all(
            value is True for value in (
                self.income_verified,
                self.credit_check_passed,
                self.rental_history_verified,
                self.employment_verified,
            )
        )


@dataclass(frozen=True)
class ConditionalOfferDetails:
    """Written conditional offer for a specific unit."""
    unit_id: Optional[str] = None
    offer_letter_delivered: Optional[bool] = None
    delivery_method: Optional[Union[DeliveryMethod, str]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_id", _text(self.unit_id))
        object.__setattr__(
            self, "delivery_method", _optional_enum(DeliveryMethod, self.delivery_method)
        )


@dataclass(frozen=True)
class BackgroundCheckAuthorization:
    """Applicant's signed authorization to run the criminal background check."""
    authorization_signed: Optional[bool] = None
    signed_at: Optional[Union[datetime, str]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.signed_at, datetime):
            object.__setattr__(self, "signed_at", _text(self.signed_at))


@dataclass(frozen=True)
class AdverseInfoDetails:
    """Outcome of the background check when it surfaced adverse information."""
    adverse_info_found: Optional[bool] = None
    notice_delivered: Optional[bool] = None
    adverse_info_summary: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "adverse_info_summary", _text(self.adverse_info_summary))


@dataclass(frozen=True)
class FinalDecision:
    """Written final decision on the application."""
    decision: Optional[Union[FinalDecisionType, str]] = None
    rationale: Optional[str] = None
    article_23a_factors_considered: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "decision", _optional_enum(FinalDecisionType, self.decision))
        object.__setattr__(self, "rationale", _text(self.rationale))
        object.__setattr__(self, "article_23a_factors_considered",
                           _texts(self.article_23a_factors_considered))


# =============================================================================
# Modern Requests
# =============================================================================

@dataclass(frozen=True)
class TransitionRequest:
    """Request to move an application from current_state to target_state."""
    application_id: str
    market_id: str
    current_state: WorkflowState
    target_state: WorkflowState
    actor_id: str
    actor_type: ActorType
    prequalification_results: Optional[PrequalificationResults] = None
    conditional_offer_details: Optional[ConditionalOfferDetails] = None
    background_check_authorization: Optional[BackgroundCheckAuthorization] = None
    adverse_info_details: Optional[AdverseInfoDetails] = None
    final_decision: Optional[FinalDecision] = None

    _REQUIRED = ("application_id", "market_id", "current_state", "target_state",
                 "actor_id", "actor_type")

    def __post_init__(self) -> None:
        _require({f: getattr(self, f) for f in self._REQUIRED}, self._REQUIRED, "TransitionRequest")
        object.__setattr__(self, "current_state",
                           _coerce_enum(WorkflowState, self.current_state, "current_state"))
        object.__setattr__(self, "target_state",
                           _coerce_enum(WorkflowState, self.target_state, "target_state"))
        object.__setattr__(self, "actor_type",
                           _coerce_enum(ActorType, self.actor_type, "actor_type"))
        object.__setattr__(self, "prequalification_results",
                           _payload(PrequalificationResults, self.prequalification_results))
        object.__setattr__(self, "conditional_offer_details",
                           _payload(ConditionalOfferDetails, self.conditional_offer_details))
        object.__setattr__(self, "background_check_authorization",
                           _payload(BackgroundCheckAuthorization, self.background_check_authorization))
        object.__setattr__(self, "adverse_info_details",
                           _payload(AdverseInfoDetails, self.adverse_info_details))
        object.__setattr__(self, "final_decision",
                           _payload(FinalDecision, self.final_decision))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TransitionRequest":
        values = _normalize_keys(data)
        known = {f.name for f in fields(cls)}
        _require(values, cls._REQUIRED, cls.__name__)
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass(frozen=True)
class CheckRequest:
    """
    Request to run a screening operation.

    check_type stays a string: strings outside CheckType are classified as
    unrestricted by the gate and reported with a warning violation.
    """
    application_id: str
    market_id: str
    current_state: WorkflowState
    check_type: Union[CheckType, str]
    actor_id: str

    _REQUIRED = ("application_id", "market_id", "current_state", "check_type", "actor_id")

    def __post_init__(self) -> None:
        _require({f: getattr(self, f) for f in self._REQUIRED}, self._REQUIRED, "CheckRequest")
        object.__setattr__(self, "current_state",
                           _coerce_enum(WorkflowState, self.current_state, "current_state"))
        if isinstance(self.check_type, CheckType):
            object.__setattr__(self, "check_type", self.check_type.value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckRequest":
        values = _normalize_keys(data)
        _require(values, cls._REQUIRED, cls.__name__)
        return cls(**{k: values[k] for k in cls._REQUIRED})


# =============================================================================
# Legacy Requests
# =============================================================================

@dataclass(frozen=True)
class LegacyBackgroundCheckRequest:
    """Stage-named screening request from pre-workflow callers."""
    application_id: str
    market_id: str
    current_stage: str
    check_type: Union[CheckType, str]

    _REQUIRED = ("application_id", "market_id", "current_stage", "check_type")

    def __post_init__(self) -> None:
        _require({f: getattr(self, f) for f in self._REQUIRED}, self._REQUIRED,
                 "LegacyBackgroundCheckRequest")
        if isinstance(self.current_stage, LegacyStage):
            object.__setattr__(self, "current_stage", self.current_stage.value)
        if isinstance(self.check_type, CheckType):
            object.__setattr__(self, "check_type", self.check_type.value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LegacyBackgroundCheckRequest":
        values = _normalize_keys(data)
        _require(values, cls._REQUIRED, cls.__name__)
        return cls(**{k: values[k] for k in cls._REQUIRED})


@dataclass(frozen=True)
class LegacyStageTransitionRequest:
    """
    Stage-named transition request from pre-workflow callers.

    Older callers also send stage_history; from_dict drops it, since stage
    order is judged from current_stage and target_stage alone.
    """
    application_id: str
    market_id: str
    current_stage: str
    target_stage: str

    _REQUIRED = ("application_id", "market_id", "current_stage", "target_stage")

    def __post_init__(self) -> None:
        _require({f: getattr(self, f) for f in self._REQUIRED}, self._REQUIRED,
                 "LegacyStageTransitionRequest")
        for name in ("current_stage", "target_stage"):
            value = getattr(self, name)
            if isinstance(value, LegacyStage):
                object.__setattr__(self, name, value.value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LegacyStageTransitionRequest":
        values = _normalize_keys(data)
        _require(values, cls._REQUIRED, cls.__name__)
        return cls(**{k: values[k] for k in cls._REQUIRED})
