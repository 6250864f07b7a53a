"""
Settlement stages: lock -> result -> points.

Each stage re-reads pending work from the data service and writes only when
the stored value differs from the computed one, so any stage can be re-run
(or run by several workers at once) without changing the outcome.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from toto.api.base import BetFilter, DataService, MatchFilter
from toto.api.errors import BUSINESS_ERRORS, AuthError, TransientError
from toto.models.schemas import Match, MatchStatus
from toto.utils.clock import utc_now

from .scoring import compute_points, derive_result

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    stage: str
    examined: int = 0   # records looked at
    updated: int = 0    # writes applied
    skipped: int = 0    # not actionable yet (no kickoff time, missing scores)
    failed: int = 0     # writes or sub-queries that errored
    aborted: bool = False
    elapsed_ms: float = 0.0

    def summary(self) -> str:
        text = f"{self.stage}: {self.updated} updated / {self.examined} examined"
        if self.skipped:
            text += f", {self.skipped} skipped"
        if self.failed:
            text += f", {self.failed} failed"
        if self.aborted:
            text += " (aborted)"
        return f"{text} in {self.elapsed_ms:.0f}ms"


@contextmanager
def isolated(result: StageResult, entity: str, record_id: str):
    """
    Confine a failure to one record.
    AuthError propagates: the orchestrator owns re-authentication.
    """
    try:
        yield
    except AuthError:
        raise
    except TransientError as e:
        result.failed += 1
        logger.warning("%s %s: data service unavailable, retrying next tick (%s)", entity, record_id, e)
    except BUSINESS_ERRORS as e:
        result.failed += 1
        logger.warning("%s %s skipped: %s", entity, record_id, e)
    except Exception:
        result.failed += 1
        logger.exception("Unexpected error while processing %s %s", entity, record_id)


@contextmanager
def _timed(result: StageResult):
    started = time.perf_counter()
    try:
        yield result
    except BaseException:
        result.aborted = True
        raise
    finally:
        result.elapsed_ms = (time.perf_counter() - started) * 1000


# -------------------------------------------------
# LOCK: upcoming -> live once kickoff has passed
# -------------------------------------------------
async def run_lock_stage(service: DataService, clock: Callable[[], datetime] = utc_now) -> StageResult:
    result = StageResult("lock")
    with _timed(result):
        now = clock()
        matches = await service.list_matches(
            MatchFilter(statuses=(MatchStatus.UPCOMING,), order_by_start=True)
        )

        for match in matches:
            result.examined += 1
            if match.starts_at is None:
                result.skipped += 1
                logger.warning("Match %s (%s) has no kickoff time, cannot lock", match.id, match.label)
                continue
            if match.starts_at > now:
                continue

            with isolated(result, "match", match.id):
                await service.update_match(match.id, {"status": MatchStatus.LIVE})
                result.updated += 1
                logger.info("Locked match %s (%s), kickoff %s", match.id, match.label, match.starts_at.isoformat())

    return result


# -------------------------------------------------
# RESULT: H/D/A from final scores
# -------------------------------------------------
async def run_result_stage(service: DataService) -> StageResult:
    result = StageResult("result")
    with _timed(result):
        matches = await service.list_matches(
            MatchFilter(statuses=(MatchStatus.LIVE, MatchStatus.COMPLETED))
        )

        for match in matches:
            result.examined += 1
            # Scores not entered yet is a normal pending state
            if not match.has_scores:
                result.skipped += 1
                logger.debug("Match %s has no final score yet", match.id)
                continue

            outcome = derive_result(match.home_score, match.away_score)
            if match.result == outcome:
                continue

            with isolated(result, "match", match.id):
                await service.update_match(match.id, {"result": outcome})
                result.updated += 1
                previous = match.result.value if match.result else "unset"
                logger.info(
                    "Match %s (%s) %d-%d: result %s -> %s",
                    match.id, match.label, match.home_score, match.away_score, previous, outcome.value,
                )

    return result


# -------------------------------------------------
# POINTS: rescore every bet on every decided match
# -------------------------------------------------
async def _settle_match(service: DataService, match: Match, result: StageResult) -> None:
    bets = await service.list_bets(BetFilter(match_id=match.id))
    changed = 0

    for bet in bets:
        result.examined += 1
        points = compute_points(bet.pick, match.result)
        if bet.points == points:
            continue

        with isolated(result, "bet", bet.id):
            await service.update_bet(bet.id, {"points": points})
            result.updated += 1
            changed += 1

    if changed:
        logger.info("Match %s (result %s): rescored %d/%d bets", match.id, match.result.value, changed, len(bets))


async def run_points_stage(service: DataService) -> StageResult:
    result = StageResult("points")
    with _timed(result):
        matches = await service.list_matches(MatchFilter(has_result=True))

        for match in matches:
            with isolated(result, "match", match.id):
                await _settle_match(service, match, result)

    return result
