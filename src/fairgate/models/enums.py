"""
FairGate Enumerations

All enumeration types used throughout the FairGate system.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


# =============================================================================
# Workflow States
# =============================================================================

class WorkflowState(str, Enum):
    """
    Lifecycle states of a rental application under Fair Chance Housing.

    PREQUALIFICATION is the initial state. APPROVED and DENIED are terminal
    in every shipped market pack.
    """
    PREQUALIFICATION = "PREQUALIFICATION"
    CONDITIONAL_OFFER = "CONDITIONAL_OFFER"
    BACKGROUND_CHECK_ALLOWED = "BACKGROUND_CHECK_ALLOWED"
    INDIVIDUALIZED_ASSESSMENT = "INDIVIDUALIZED_ASSESSMENT"
    APPROVED = "APPROVED"
    DENIED = "DENIED"


class LegacyStage(str, Enum):
    """Stage names spoken by callers written before the workflow states existed."""
    INITIAL_INQUIRY = "initial_inquiry"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_REVIEW = "application_review"
    CONDITIONAL_OFFER = "conditional_offer"
    BACKGROUND_CHECK = "background_check"
    FINAL_APPROVAL = "final_approval"
    LEASE_SIGNING = "lease_signing"


# =============================================================================
# Screening Checks
# =============================================================================

class CheckType(str, Enum):
    """Screening operations a caller may ask to run."""
    # Criminal history inquiries
    CRIMINAL_BACKGROUND_CHECK = "criminal_background_check"
    CRIMINAL_HISTORY = "criminal_history"
    ARREST_RECORD = "arrest_record"
    CONVICTION_RECORD = "conviction_record"
    # Prequalification checks
    INCOME_VERIFICATION = "income_verification"
    CREDIT_CHECK = "credit_check"
    RENTAL_HISTORY = "rental_history"
    EMPLOYMENT_VERIFICATION = "employment_verification"
    EVICTION_HISTORY = "eviction_history"

    @classmethod
    def parse(cls, value: object) -> Optional["CheckType"]:
        """Return the matching member, or None for a string outside the set."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class CheckClassification(str, Enum):
    """Whether a check is gated behind the restricted unlock state."""
    RESTRICTED = "restricted"
    UNRESTRICTED = "unrestricted"


# =============================================================================
# Violations
# =============================================================================

class ViolationCode(str, Enum):
    """Closed set of violation codes emitted by the gates."""
    FCHA_INVALID_STATE_TRANSITION = "FCHA_INVALID_STATE_TRANSITION"
    FCHA_PREQUALIFICATION_INCOMPLETE = "FCHA_PREQUALIFICATION_INCOMPLETE"
    FCHA_NOTICE_NOT_ISSUED = "FCHA_NOTICE_NOT_ISSUED"
    FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED = "FCHA_INDIVIDUALIZED_ASSESSMENT_REQUIRED"
    FCHA_BACKGROUND_CHECK_NOT_ALLOWED = "FCHA_BACKGROUND_CHECK_NOT_ALLOWED"
    FCHA_UNRECOGNIZED_CHECK_TYPE = "FCHA_UNRECOGNIZED_CHECK_TYPE"
    # Legacy surface
    FCHA_CRIMINAL_CHECK_BEFORE_OFFER = "FCHA_CRIMINAL_CHECK_BEFORE_OFFER"
    FCHA_STAGE_ORDER_VIOLATION = "FCHA_STAGE_ORDER_VIOLATION"


class Severity(str, Enum):
    """Violation severity. Only CRITICAL blocks."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class FixPriority(str, Enum):
    """Priority of a recommended remediation."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# Actors and Notices
# =============================================================================

class ActorType(str, Enum):
    """Who requested the transition."""
    SYSTEM = "system"
    USER = "user"
    AGENT = "agent"


class DeliveryMethod(str, Enum):
    """How a notice reached the applicant."""
    EMAIL = "email"
    MAIL = "mail"
    IN_APP = "in_app"
    HAND_DELIVERED = "hand_delivered"


class NoticeType(str, Enum):
    """Notices a transition records as issued."""
    CONDITIONAL_OFFER_LETTER = "conditional_offer_letter"
    BACKGROUND_CHECK_AUTHORIZATION = "background_check_authorization"
    ADVERSE_ACTION_NOTICE = "adverse_action_notice"
    ARTICLE_23A_FACTORS_NOTICE = "article_23a_factors_notice"
    APPROVAL_NOTICE = "approval_notice"
    DENIAL_NOTICE = "denial_notice"


class FinalDecisionType(str, Enum):
    """Outcome recorded with a final decision payload."""
    APPROVED = "approved"
    DENIED = "denied"


# =============================================================================
# Registry Behaviour
# =============================================================================

class UnknownMarketMode(str, Enum):
    """
    What the registry returns for a market with no registered profile.

    FAIL_OPEN resolves to an unenforced profile (every request allowed).
    FAIL_CLOSED resolves to an enforced profile with no edges and no unlock
    state (every transition and every restricted check blocked).
    """
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"
