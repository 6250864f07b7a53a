"""Tests for the cycle orchestrator."""

import asyncio
from datetime import datetime, timedelta, timezone

from toto.api import AuthError, Credentials, InMemoryDataService, TransientError
from toto.worker import SettlementWorker

NOW = datetime(2025, 8, 16, 18, 0, tzinfo=timezone.utc)
CREDS = Credentials("admin@example.com", "secret")


class MovableClock:
    """Clock the test can advance."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SlowDataService(InMemoryDataService):
    """Every match listing takes `delay` seconds."""

    def __init__(self, delay: float, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay

    async def list_matches(self, flt=None):
        await asyncio.sleep(self.delay)
        return await super().list_matches(flt)


def seeded_service(**kwargs) -> InMemoryDataService:
    service = InMemoryDataService(credentials=CREDS, **kwargs)
    m1 = service.seed_match(id="m1", status="upcoming", starts_at=NOW - timedelta(minutes=5))
    m2 = service.seed_match(id="m2", status="live", home_score=2, away_score=1)
    service.seed_bet(id="b0", match_id=m1, user_id="u1", pick="H")
    service.seed_bet(id="b1", match_id=m2, user_id="u1", pick="H")
    service.seed_bet(id="b2", match_id=m2, user_id="u2", pick="D")
    service.seed_bet(id="b3", match_id=m2, user_id="u3", pick="A")
    return service


def test_cycle_runs_all_stages_in_order():
    print("\n=== Testing Cycle ===")
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)

    report = asyncio.run(worker.run_cycle())

    assert report is not None and not report.skipped
    assert [s.stage for s in report.stages] == ["lock", "result", "points"]
    assert service.matches["m1"]["status"] == "live"
    assert service.matches["m2"]["result"] == "H"
    assert [service.bets[b].get("points") for b in ("b0", "b1", "b2", "b3")] == [None, 3, 1, 1]
    assert service.calls[0] == "authenticate"
    print(report.summary())
    print("[OK] Cycle PASSED")


def test_second_cycle_is_a_noop():
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)

    first = asyncio.run(worker.run_cycle())
    second = asyncio.run(worker.run_cycle())

    assert first.updated == 5
    assert second.updated == 0
    # Session is reused while valid
    assert service.calls.count("authenticate") == 1


def test_bad_credentials_skip_the_tick():
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, Credentials("admin@example.com", "wrong"), interval_s=60, clock=lambda: NOW)

    report = asyncio.run(worker.run_cycle())

    assert report.skipped
    assert "authentication failed" in report.skip_reason
    assert report.stages == []
    assert service.writes == []


def test_auth_service_down_skips_the_tick():
    service = seeded_service(clock=lambda: NOW)
    service.fail_next("authenticate", TransientError("connection refused"))
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)

    report = asyncio.run(worker.run_cycle())
    assert report.skipped
    assert service.writes == []

    # Next tick recovers
    report = asyncio.run(worker.run_cycle())
    assert not report.skipped
    assert report.updated == 5


def test_rejected_session_is_renewed_once_per_tick():
    """Server-side expiry mid-cycle: re-authenticate and finish the cycle."""
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)
    asyncio.run(worker.run_cycle())

    service.revoke_sessions()
    service.seed_match(id="m3", status="completed", home_score=0, away_score=0)
    report = asyncio.run(worker.run_cycle())

    assert not report.skipped
    assert service.calls.count("authenticate") == 2
    assert [s.stage for s in report.stages] == ["lock", "result", "points"]
    assert service.matches["m3"]["result"] == "D"


def test_second_auth_rejection_skips_rest_of_tick():
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)
    asyncio.run(worker.run_cycle())

    service.fail_next("list_matches", AuthError("401"))
    service.fail_next("list_matches", AuthError("401"))
    report = asyncio.run(worker.run_cycle())

    assert report.skipped
    assert "lock" in report.skip_reason
    assert service.calls.count("authenticate") == 2
    assert service.session is None


def test_expired_session_is_refreshed_before_cycle():
    clock = MovableClock()
    service = seeded_service(clock=clock, session_ttl_s=300)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=clock)

    asyncio.run(worker.run_cycle())
    clock.advance(minutes=4)
    asyncio.run(worker.run_cycle())
    assert service.calls.count("authenticate") == 1

    clock.advance(minutes=2)
    asyncio.run(worker.run_cycle())
    assert service.calls.count("authenticate") == 2


def test_stage_failure_does_not_stop_later_stages():
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)
    service.fail_next("list_matches", TransientError("502 Bad Gateway"))

    report = asyncio.run(worker.run_cycle())

    assert report.stage("lock").aborted
    assert not report.stage("result").aborted
    assert service.matches["m1"]["status"] == "upcoming"
    assert service.matches["m2"]["result"] == "H"
    assert service.bets["b1"]["points"] == 3


def test_unexpected_stage_crash_is_contained():
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)
    service.fail_next("list_matches", KeyError("boom"))

    report = asyncio.run(worker.run_cycle())
    assert report.stage("lock").aborted
    assert report.stage("points").updated == 3


def test_overlapping_cycle_is_skipped():
    service = SlowDataService(0.02, credentials=CREDS, clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)

    async def both():
        return await asyncio.gather(worker.run_cycle(), worker.run_cycle())

    first, second = asyncio.run(both())
    assert first is not None
    assert second is None


def test_run_forever_ticks_until_stopped():
    print("\n=== Testing Worker Loop ===")
    service = seeded_service(clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=0.05, clock=lambda: NOW)

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(worker.run_forever(stop))
        await asyncio.sleep(0.18)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(scenario())
    assert worker.cycles_run >= 2
    assert service.matches["m2"]["result"] == "H"
    print(f"Cycles run: {worker.cycles_run}")
    print("[OK] Worker loop PASSED")


def test_stop_abandons_in_flight_cycle():
    service = SlowDataService(10, credentials=CREDS, clock=lambda: NOW)
    worker = SettlementWorker(service, CREDS, interval_s=60, clock=lambda: NOW)

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(worker.run_forever(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(scenario())
    assert service.writes == []


def test_interval_must_be_positive():
    try:
        SettlementWorker(InMemoryDataService(), CREDS, interval_s=0)
    except ValueError:
        pass
    else:
        raise AssertionError("interval_s=0 should be rejected")


if __name__ == "__main__":
    print("=" * 50)
    print("Settlement Worker Test Suite")
    print("=" * 50)

    test_cycle_runs_all_stages_in_order()
    test_run_forever_ticks_until_stopped()

    print("\n" + "=" * 50)
    print("All tests PASSED!")
    print("=" * 50)
