"""Cycle orchestrator: runs lock -> result -> points on a fixed interval."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from toto.api.base import Credentials, DataService
from toto.api.errors import AuthError, TransientError
from toto.settlement.stages import StageResult, run_lock_stage, run_points_stage, run_result_stage
from toto.utils.clock import utc_now

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one tick."""
    started_at: datetime
    stages: list[StageResult] = field(default_factory=list)
    skipped: bool = False
    skip_reason: str = ""
    elapsed_ms: float = 0.0

    def stage(self, name: str) -> Optional[StageResult]:
        return next((s for s in self.stages if s.stage == name), None)

    @property
    def updated(self) -> int:
        return sum(s.updated for s in self.stages)

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.stages)

    def summary(self) -> str:
        if self.skipped:
            return f"Cycle skipped: {self.skip_reason}"
        parts = "; ".join(s.summary() for s in self.stages)
        return f"Cycle done in {self.elapsed_ms:.0f}ms | {parts}"


class SettlementWorker:
    """
    Single logical worker.
    - One cycle at a time: run_cycle() returns None if a cycle is already running.
    - A session is (re)established before each cycle and at most once more
      per cycle when a stage hits AuthError.
    - Stage failures are logged and never stop the process.
    """

    def __init__(
        self,
        service: DataService,
        credentials: Credentials,
        interval_s: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.service = service
        self.credentials = credentials
        self.interval_s = float(interval_s)
        self.clock = clock
        self._busy = asyncio.Lock()
        self.cycles_run = 0

    # -------------------------
    # Auth
    # -------------------------
    async def _authenticate(self) -> Optional[str]:
        """Log in. Returns a skip reason on failure, None on success."""
        try:
            await self.service.authenticate(self.credentials)
        except AuthError as e:
            logger.error("Authentication failed, skipping this tick: %s", e)
            return f"authentication failed ({e})"
        except TransientError as e:
            logger.warning("Data service unreachable during authentication, skipping this tick: %s", e)
            return f"data service unavailable ({e})"
        return None

    async def _ensure_session(self) -> Optional[str]:
        session = self.service.session
        if session is not None and session.is_valid(self.clock()):
            return None
        return await self._authenticate()

    # -------------------------
    # Stages
    # -------------------------
    def _stages(self) -> list[tuple[str, Callable[[], Awaitable[StageResult]]]]:
        return [
            ("lock", lambda: run_lock_stage(self.service, self.clock)),
            ("result", lambda: run_result_stage(self.service)),
            ("points", lambda: run_points_stage(self.service)),
        ]

    async def _run_stage(self, name: str, stage: Callable[[], Awaitable[StageResult]]) -> StageResult:
        """Run one stage, turning anything it raises (except AuthError) into an aborted result."""
        try:
            return await stage()
        except AuthError:
            raise
        except TransientError as e:
            logger.warning("Stage %s abandoned, data service unavailable: %s", name, e)
        except Exception:
            logger.exception("Stage %s crashed", name)
        return StageResult(name, aborted=True)

    async def run_cycle(self) -> Optional[CycleReport]:
        """Run lock, result and points once, in that order."""
        if self._busy.locked():
            logger.warning("Previous cycle still running, skipping this tick")
            return None

        async with self._busy:
            started = time.perf_counter()
            report = CycleReport(started_at=self.clock())
            try:
                await self._cycle(report)
            finally:
                report.elapsed_ms = (time.perf_counter() - started) * 1000
                self.cycles_run += 1

        if report.skipped:
            logger.warning(report.summary())
        else:
            logger.info(report.summary())
        return report

    async def _cycle(self, report: CycleReport) -> None:
        reason = await self._ensure_session()
        if reason:
            report.skipped, report.skip_reason = True, reason
            return

        reauthenticated = False
        for name, stage in self._stages():
            while True:
                try:
                    report.stages.append(await self._run_stage(name, stage))
                    break
                except AuthError as e:
                    self.service.invalidate_session()
                    if reauthenticated:
                        logger.error("Stage %s rejected again after re-authentication: %s", name, e)
                        report.skipped, report.skip_reason = True, f"session rejected during {name} stage"
                        return
                    logger.warning("Session rejected during %s stage, re-authenticating: %s", name, e)

                reauthenticated = True
                reason = await self._authenticate()
                if reason:
                    report.skipped, report.skip_reason = True, reason
                    return
                # Stages are idempotent, so re-running the interrupted one is safe

    # -------------------------
    # Loop
    # -------------------------
    async def run_forever(self, stop: asyncio.Event) -> None:
        """
        Tick every interval_s until `stop` is set.
        First cycle runs immediately. Ticks missed while a slow cycle was
        running are dropped, not queued. Setting `stop` abandons an in-flight
        cycle; every write is idempotent so the next start picks it up again.
        """
        loop = asyncio.get_running_loop()
        logger.info("Settlement worker started, interval %.1fs", self.interval_s)
        origin = loop.time()
        slot = 0

        while not stop.is_set():
            cycle = asyncio.create_task(self.run_cycle())
            stopper = asyncio.create_task(stop.wait())
            done, _ = await asyncio.wait({cycle, stopper}, return_when=asyncio.FIRST_COMPLETED)

            if cycle not in done:
                cycle.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cycle
                logger.info("Stop requested, in-flight cycle abandoned")
                break

            stopper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stopper
            if cycle.exception() is not None:
                # run_cycle() handles stage errors itself; this is a bug in the loop
                logger.error("Cycle failed unexpectedly", exc_info=cycle.exception())

            # Next slot on the fixed grid strictly after now
            elapsed = loop.time() - origin
            next_slot = math.floor(elapsed / self.interval_s) + 1
            missed = next_slot - slot - 1
            if missed > 0:
                logger.warning("Cycle overran the interval, skipped %d tick(s)", missed)
            slot = next_slot
            delay = origin + next_slot * self.interval_s - loop.time()

            try:
                await asyncio.wait_for(stop.wait(), timeout=max(0.0, delay))
            except asyncio.TimeoutError:
                pass

        logger.info("Settlement worker stopped after %d cycle(s)", self.cycles_run)
