"""Violation ledger and remediation hooks."""

from guidewatch.ledger.hooks import (
    HookRegistry,
    HookResult,
    HookTimeout,
    RemediationHook,
    call_hook,
    normalize_result,
)
from guidewatch.ledger.ledger import ViolationLedger

__all__ = [
    "HookRegistry",
    "HookResult",
    "HookTimeout",
    "RemediationHook",
    "ViolationLedger",
    "call_hook",
    "normalize_result",
]
