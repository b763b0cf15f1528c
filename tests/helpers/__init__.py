"""
Test helpers for FairGate gate tests.

Modules:
- assertions: Allowed/blocked result checks
"""
from .assertions import assert_allowed, assert_blocked, violation_codes

__all__ = [
    "assert_allowed",
    "assert_blocked",
    "violation_codes",
]
