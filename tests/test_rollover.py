"""Tests for day-boundary detection and migration of in-flight timers."""

from __future__ import annotations

from watchguard.engine import WatchGuardEngine
from watchguard.tracking.rollover import LAST_RUN_DATE_KEY
from watchguard.tracking.timers import ACTIVE_TIMERS_KEY

DAY_S = 24 * 3600


class TestFirstRun:
    async def test_first_run_records_date_and_zeroes_timers(self, store, agents, clock):
        await store.set({ACTIVE_TIMERS_KEY: {
            "1": {"bucket": "phd", "accumulated_ms": 4000, "running_since_ms": None},
        }})
        engine = WatchGuardEngine(store, agents, clock=clock)
        report = await engine.rollover.check()
        assert report.previous_date is None
        assert report.migrated_ms == {}
        data = await store.get(LAST_RUN_DATE_KEY, clock.today())
        assert data == {LAST_RUN_DATE_KEY: clock.today()}
        assert (await engine.timers.get(1)).accumulated_ms == 0

    async def test_same_day_is_noop(self, engine, clock):
        await engine.rollover.check()
        await engine.controller.start_timer(1, "interesting")
        clock.advance(30)
        assert await engine.rollover.check() is None
        assert (await engine.timers.get(1)).running_since_ms == clock.now_ms() - 30_000


class TestMigration:
    async def test_paused_time_goes_to_previous_day(self, engine, store, clock):
        await engine.rollover.check()
        yesterday = clock.today()
        await engine.controller.start_timer(1, "interesting")
        clock.advance(600)
        await engine.controller.pause(1)

        clock.advance(DAY_S)
        report = await engine.rollover.check()

        assert report.previous_date == yesterday
        assert report.new_date == clock.today()
        assert (await engine.stats.saved_totals(yesterday))["interesting"] == 600_000
        state = await engine.timers.get(1)
        assert state.accumulated_ms == 0
        assert not state.running
        assert (await engine.stats.todays_totals())["interesting"] == 0

    async def test_running_timer_keeps_running_with_fresh_start(self, engine, store, clock):
        await engine.rollover.check()
        yesterday = clock.today()
        await store.set({ACTIVE_TIMERS_KEY: {
            "1": {"bucket": "curriculum", "accumulated_ms": 5000, "running_since_ms": clock.now_ms()},
            "2": {"bucket": "curriculum", "accumulated_ms": 2000, "running_since_ms": None},
        }})

        clock.advance(DAY_S)
        await engine.rollover.check()

        running = await engine.timers.get(1)
        assert running.accumulated_ms == 0
        assert running.running_since_ms == clock.now_ms()
        assert not (await engine.timers.get(2)).running
        # accumulated plus the interval that was still in flight at the check
        assert (await engine.stats.saved_totals(yesterday))["curriculum"] == 5000 + DAY_S * 1000 + 2000

    async def test_running_timer_with_no_live_interval_migrates_exactly_accumulated(self, engine, store, clock):
        await engine.rollover.check()
        yesterday = clock.today()
        clock.advance(DAY_S)
        await store.set({ACTIVE_TIMERS_KEY: {
            "1": {"bucket": "phd", "accumulated_ms": 7000, "running_since_ms": clock.now_ms()},
        }})
        await engine.rollover.check()
        assert (await engine.stats.saved_totals(yesterday))["phd"] == 7000
        assert (await engine.timers.get(1)).running

    async def test_migration_adds_to_existing_day_record(self, engine, store, clock):
        await engine.rollover.check()
        yesterday = clock.today()
        await engine.controller.start_timer(1, "trash")
        clock.advance(10)
        await engine.controller.stop(1)
        await engine.controller.start_timer(2, "trash")
        clock.advance(5)
        await engine.controller.pause(2)

        clock.advance(DAY_S)
        await engine.rollover.check()
        assert (await engine.stats.saved_totals(yesterday))["trash"] == 15_000

    async def test_repeated_check_does_not_double_count(self, engine, clock):
        await engine.rollover.check()
        yesterday = clock.today()
        await engine.controller.start_timer(1, "interesting")
        clock.advance(100)
        await engine.controller.pause(1)
        clock.advance(DAY_S)

        await engine.rollover.check()
        assert await engine.rollover.check() is None
        assert (await engine.stats.saved_totals(yesterday))["interesting"] == 100_000

    async def test_history_preserved_across_rollovers(self, engine, store, clock):
        await engine.rollover.check()
        dates = []
        for _ in range(3):
            dates.append(clock.today())
            await engine.controller.start_timer(1, "phd")
            clock.advance(60)
            await engine.controller.stop(1)
            clock.advance(DAY_S)
            await engine.rollover.check()
        history = await engine.stats.history(days=10)
        assert [d.date for d in history] == dates
        assert all(d.totals["phd"] == 60_000 for d in history)

    async def test_stopped_after_rollover_counts_for_new_day(self, engine, clock):
        await engine.rollover.check()
        await engine.controller.start_timer(1, "curriculum")
        clock.advance(DAY_S)
        await engine.rollover.check()
        clock.advance(45)
        await engine.controller.stop(1)
        assert (await engine.stats.saved_totals(clock.today()))["curriculum"] == 45_000


class TestStartupCatchUp:
    async def test_start_on_new_day_migrates_before_first_tick(self, store, agents, clock):
        yesterday = clock.today()
        await store.set({
            LAST_RUN_DATE_KEY: yesterday,
            ACTIVE_TIMERS_KEY: {
                "1": {"bucket": "interesting", "accumulated_ms": 90_000, "running_since_ms": None},
            },
        })
        clock.advance(DAY_S)

        engine = WatchGuardEngine(store, agents, clock=clock)
        await engine.start()

        assert (await store.get(LAST_RUN_DATE_KEY))[LAST_RUN_DATE_KEY] == clock.today()
        assert (await engine.stats.saved_totals(yesterday))["interesting"] == 90_000
        assert (await engine.stats.todays_totals())["interesting"] == 0
        assert (await engine.controller.stop(1)) == 0

    async def test_start_on_same_day_leaves_timers_alone(self, engine, clock):
        await engine.controller.start_timer(1, "phd")
        clock.advance(30)
        await engine.start()
        assert (await engine.stats.todays_totals())["phd"] == 30_000
