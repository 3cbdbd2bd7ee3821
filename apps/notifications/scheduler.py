"""
Sweep runner and in-process scheduler.

A sweep is a periodic full scan that re-derives state for every candidate row
and writes corrections. Each row is handled in its own transaction so a
failure on one row is logged and counted without stopping the rest.

Classes:
- SweepSummary: Counts and outcomes of one sweep run
- Sweep: Base class; subclasses supply get_queryset() and process()
- SweepScheduler: Runs sweeps once at start, then every `interval`

Time is always passed in explicitly (`now`) so tests can drive the sweeps
without waiting on real timers.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

# Outcomes that count as "no write happened"
QUIET_OUTCOMES = ('unchanged', 'skipped')


@dataclass
class SweepSummary:
    """Result of a single sweep run."""

    name: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: int = 0
    failed: int = 0
    outcomes: Counter = field(default_factory=Counter)
    failures: list = field(default_factory=list)

    @property
    def changed(self):
        return sum(
            count for outcome, count in self.outcomes.items()
            if outcome not in QUIET_OUTCOMES
        )

    @property
    def skipped(self):
        return sum(self.outcomes[outcome] for outcome in QUIET_OUTCOMES)

    def record(self, outcome):
        self.processed += 1
        self.outcomes[outcome or 'unchanged'] += 1

    def record_failure(self, item, error):
        self.processed += 1
        self.failed += 1
        self.failures.append({'item': str(item), 'error': repr(error)})

    def as_dict(self):
        return {
            'name': self.name,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'processed': self.processed,
            'changed': self.changed,
            'skipped': self.skipped,
            'failed': self.failed,
            'outcomes': dict(self.outcomes),
            'failures': list(self.failures),
        }

    def __str__(self):
        return (
            f'{self.name}: processed={self.processed} changed={self.changed} '
            f'skipped={self.skipped} failed={self.failed}'
        )


class Sweep:
    """
    Base class for periodic reconciliation sweeps.

    Subclasses set `name` and `default_interval` and implement:
    - get_queryset(now): Candidate rows
    - process(item, now): Reconcile one row, return an outcome string
    """

    name = 'sweep'
    default_interval = timedelta(hours=1)

    def get_queryset(self, now):
        raise NotImplementedError

    def process(self, item, now):
        raise NotImplementedError

    def run_once(self, now=None):
        """
        Run the sweep over every candidate row.

        Errors raised while loading the candidates propagate to the caller.
        Errors raised for a single row roll back that row only.

        Args:
            now: Instant every row is evaluated against (defaults to now)

        Returns:
            SweepSummary
        """
        now = now or timezone.now()
        summary = SweepSummary(name=self.name, started_at=now)

        for item in self.get_queryset(now):
            try:
                with transaction.atomic():
                    outcome = self.process(item, now)
            except Exception as e:
                logger.exception('%s failed for %s', self.name, item)
                summary.record_failure(item, e)
            else:
                summary.record(outcome)

        summary.finished_at = timezone.now()
        logger.info('%s', summary)
        return summary


@dataclass
class ScheduledSweep:
    sweep: Sweep
    interval: timedelta
    last_run_at: Optional[datetime] = None

    def is_due(self, now):
        return self.last_run_at is None or now - self.last_run_at >= self.interval


class SweepScheduler:
    """
    Runs registered sweeps at fixed intervals.

    Every sweep runs on the first tick, then whenever its interval has
    elapsed since its last run. A sweep that raises is logged and retried
    on its next interval.

    Args:
        clock: Callable returning the current aware datetime
        sleep: Callable taking seconds, used between ticks
    """

    def __init__(self, clock: Callable = timezone.now, sleep: Callable = time.sleep):
        self.clock = clock
        self.sleep = sleep
        self.entries = []

    def add(self, sweep: Sweep, interval: timedelta = None):
        interval = interval or sweep.default_interval
        if interval <= timedelta(0):
            raise ValueError('Sweep interval must be positive.')
        self.entries.append(ScheduledSweep(sweep=sweep, interval=interval))
        return self

    def run_pending(self, now=None):
        """
        Run every sweep that is due at `now`.

        Returns:
            list: SweepSummary for each sweep that completed
        """
        now = now or self.clock()
        summaries = []

        for entry in self.entries:
            if not entry.is_due(now):
                continue
            entry.last_run_at = now
            try:
                summaries.append(entry.sweep.run_once(now))
            except Exception:
                logger.exception('%s failed; will retry in %s', entry.sweep.name, entry.interval)

        return summaries

    def seconds_until_next(self, now):
        """Seconds until the earliest sweep is due (0 if one is due now)."""
        waits = []
        for entry in self.entries:
            if entry.last_run_at is None:
                return 0.0
            remaining = entry.last_run_at + entry.interval - now
            waits.append(max(remaining.total_seconds(), 0.0))
        return min(waits) if waits else 0.0

    def run_forever(self, max_ticks: int = None, poll_seconds: float = 60.0):
        """
        Scheduler loop.

        Args:
            max_ticks: Stop after this many ticks (None runs until interrupted)
            poll_seconds: Upper bound on a single sleep
        """
        if not self.entries:
            raise ValueError('No sweeps registered.')

        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            self.run_pending(self.clock())
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            wait = self.seconds_until_next(self.clock())
            self.sleep(min(max(wait, 1.0), poll_seconds))
