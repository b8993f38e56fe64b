"""Remediation hooks: the collaborator-side half of auto-fixing.

A hook is a zero-argument callable registered per rule.  It performs the
actual remediation (creating folders, committing, ...) and reports back.
Accepted return values:

* :class:`HookResult`
* ``bool``
* a mapping with ``success`` and optional ``detail`` keys
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from guidewatch.core.models import RuleId

HookReturn = Union["HookResult", bool, Mapping[str, Any]]
RemediationHook = Callable[[], HookReturn]
HookRegistry = Mapping[RuleId, RemediationHook]


@dataclass(frozen=True)
class HookResult:
    success: bool
    detail: str = ""


class HookTimeout(Exception):
    """The hook did not return within the configured bound."""


def normalize_result(value: Any) -> HookResult:
    """Coerce whatever a hook returned into a :class:`HookResult`."""
    if isinstance(value, HookResult):
        return value
    if isinstance(value, bool):
        return HookResult(success=value)
    if isinstance(value, Mapping):
        detail = value.get("detail") or value.get("details") or value.get("error") or ""
        return HookResult(success=bool(value.get("success")), detail=str(detail))
    return HookResult(success=False, detail=f"Unsupported hook result: {value!r}")


def call_hook(hook: RemediationHook, timeout: float | None = None) -> HookResult:
    """Invoke *hook* once and wait for it.

    With a *timeout* the hook runs on a daemon thread; if it has not
    finished in time :class:`HookTimeout` is raised and the thread is left
    to finish on its own.  Exceptions raised by the hook propagate.
    """
    if timeout is None:
        return normalize_result(hook())

    outcome: dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["value"] = hook()
        except BaseException as exc:  # re-raised on the calling thread
            outcome["error"] = exc

    worker = threading.Thread(target=_target, name="guidewatch-hook", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise HookTimeout(f"hook did not finish within {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return normalize_result(outcome.get("value"))
