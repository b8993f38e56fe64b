"""Wiring a complete, independent audit instance for one session."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from guidewatch.core.config import GuidewatchConfig, validate_config
from guidewatch.core.models import utcnow
from guidewatch.ledger.hooks import HookRegistry
from guidewatch.ledger.ledger import ViolationLedger
from guidewatch.rules.base import RuleSet
from guidewatch.rules.evaluators import build_rule_set
from guidewatch.scheduler.health import HealthChecker
from guidewatch.scheduler.notify import NotificationSink
from guidewatch.scheduler.periodic import PeriodicScheduler, TimerFactory
from guidewatch.scoring.scorer import ComplianceScorer


@dataclass
class Auditor:
    """The components that audit one session. Instances share no state."""

    config: GuidewatchConfig
    rules: RuleSet
    scorer: ComplianceScorer
    ledger: ViolationLedger
    scheduler: PeriodicScheduler


def build_auditor(
    config: GuidewatchConfig | None = None,
    hooks: HookRegistry | None = None,
    sink: NotificationSink | None = None,
    clock: Callable[[], datetime] = utcnow,
    timer_factory: TimerFactory = threading.Timer,
) -> Auditor:
    """Build rules, scorer, ledger and scheduler from *config*.

    Raises :class:`~guidewatch.core.errors.ConfigurationError` immediately
    when the rule weights, thresholds or numeric limits are invalid.
    """
    config = config or GuidewatchConfig()
    validate_config(config)
    rules = build_rule_set(config.rules, clock=clock)
    scorer = ComplianceScorer(rules, config.scoring, clock=clock)
    ledger = ViolationLedger(hooks, config.ledger, clock=clock)
    scheduler = PeriodicScheduler(
        scorer,
        ledger,
        sink=sink,
        config=config.scheduler,
        health=HealthChecker(config.rules, config.scheduler, clock=clock),
        clock=clock,
        timer_factory=timer_factory,
    )
    return Auditor(config=config, rules=rules, scorer=scorer, ledger=ledger, scheduler=scheduler)
