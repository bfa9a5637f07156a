"""
Resilience Layer for OmniLedger.

Provides bounded retry for compare-and-set conflicts.
"""

from .retry import conflict_retrying, execute_with_conflict_retry

__all__ = [
    "conflict_retrying",
    "execute_with_conflict_retry",
]
