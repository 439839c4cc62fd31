"""Scheduler: decides when the next step runs and handles cancellation."""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Callable, Optional, Sequence

import structlog

from .collection import CollectionRequest
from .contracts import NullListener, RunListener
from .executor import StepExecutor, StepOutcome
from .models import RunReport
from .report import generate_report
from .session import RunSession

LOGGER = structlog.get_logger("collection_runner")


class NextAction(str, Enum):
    CONTINUE = "continue"
    DELAY = "delay"
    DONE = "done"


class RunScheduler:
    """Drives a started session to a terminal status, one step at a time.

    Steps never overlap. ``cancel()`` may be called from any thread; it is
    observed between steps, so a step already in flight finishes first.
    """

    def __init__(
        self,
        session: RunSession,
        requests: Sequence[CollectionRequest],
        executor: StepExecutor,
        *,
        listener: RunListener | None = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.session = session
        self.requests = list(requests)
        self._executor = executor
        self._listener = listener or NullListener()
        self._cancel_requested = threading.Event()
        self._sleep = sleep or self._interruptible_sleep
        self._logger = LOGGER.bind(run_id=session.run_id)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def cancel(self) -> None:
        if not self._cancel_requested.is_set():
            self._logger.info("cancel_requested", progress=self.session.progress())
        self._cancel_requested.set()

    def next_action(self, outcome: StepOutcome) -> NextAction:
        if outcome.finished or self.session.is_terminal() or self.cancel_requested:
            return NextAction.DONE
        if self.session.config.delay_ms > 0:
            return NextAction.DELAY
        return NextAction.CONTINUE

    def step(self) -> StepOutcome:
        """Run one step, or apply a pending cancellation instead."""

        if self.cancel_requested and not self.session.is_terminal():
            return self._apply_cancellation()
        outcome = self._executor.execute_step(self.session, self.requests)
        if outcome.result is not None:
            self._listener.step_completed(outcome.result, self.session)
        return outcome

    def run(self) -> RunReport:
        """Drive the session synchronously until it is terminal."""

        while True:
            outcome = self.step()
            action = self.next_action(outcome)
            if action == NextAction.DELAY:
                self._sleep(self.session.config.delay_ms / 1000)
            elif action == NextAction.DONE:
                return self._finish(outcome)

    async def run_async(self) -> RunReport:
        """Drive the session on an asyncio loop without blocking it.

        Each step runs in a worker thread and the inter-step delay is an
        ``asyncio.sleep``.
        """

        while True:
            outcome = await asyncio.to_thread(self.step)
            action = self.next_action(outcome)
            if action == NextAction.DELAY:
                await asyncio.sleep(self.session.config.delay_ms / 1000)
            elif action == NextAction.DONE:
                return self._finish(outcome)

    def _finish(self, outcome: StepOutcome) -> RunReport:
        if not outcome.finished:
            outcome = self._apply_cancellation()
        report = outcome.report or generate_report(self.session)
        self._listener.run_finished(report)
        return report

    def _apply_cancellation(self) -> StepOutcome:
        if not self.session.is_terminal():
            self.session.cancel(self.requests)
        return StepOutcome(report=generate_report(self.session), finished=True)

    def _interruptible_sleep(self, seconds: float) -> None:
        self._cancel_requested.wait(seconds)
