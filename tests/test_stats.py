"""Tests for today's totals and the saved daily history."""

from __future__ import annotations

from watchguard.tracking.stats import coerce_totals, combine, fold_into
from watchguard.tracking.timers import ACTIVE_TIMERS_KEY, TimerState


class TestHelpers:
    def test_coerce_fills_every_bucket(self):
        assert coerce_totals(None) == {"trash": 0, "interesting": 0, "curriculum": 0, "phd": 0}
        assert coerce_totals({"phd": 5, "trash": "x"})["phd"] == 5

    def test_fold_into_adds(self):
        day = fold_into({"trash": 1000}, "trash", 500)
        assert day["trash"] == 1500
        assert day["phd"] == 0

    def test_combine_running_and_paused(self):
        timers = {
            1: TimerState("trash", accumulated_ms=1000, running_since_ms=10_000),
            2: TimerState("trash", accumulated_ms=2000),
            3: TimerState("phd"),
        }
        totals = combine({"trash": 500, "phd": 0}, timers, now_ms=14_000)
        assert totals["trash"] == 500 + 1000 + 4000 + 2000
        assert totals["phd"] == 0


class TestTodaysTotals:
    async def test_empty_day_is_all_zero(self, engine):
        totals = await engine.stats.todays_totals()
        assert set(totals) == {"trash", "interesting", "curriculum", "phd"}
        assert all(v == 0 for v in totals.values())

    async def test_saved_plus_live(self, engine, store, clock):
        today = clock.today()
        await store.set({
            today: {"interesting": 60_000},
            ACTIVE_TIMERS_KEY: {
                "7": {"bucket": "interesting", "accumulated_ms": 5000, "running_since_ms": clock.now_ms()},
            },
        })
        clock.advance(10)
        totals = await engine.stats.todays_totals()
        assert totals["interesting"] == 60_000 + 5000 + 10_000

    async def test_recomputed_every_call(self, engine, clock):
        await engine.controller.start_timer(1, "curriculum")
        clock.advance(3)
        first = (await engine.stats.todays_totals())["curriculum"]
        clock.advance(4)
        second = (await engine.stats.todays_totals())["curriculum"]
        assert (first, second) == (3000, 7000)

    async def test_other_days_not_counted(self, engine, store):
        await store.set({"2026-03-13": {"trash": 999_999}})
        assert (await engine.stats.todays_totals())["trash"] == 0


class TestHistory:
    async def test_history_oldest_first_and_limited(self, engine, store):
        await store.set({
            "2026-03-10": {"trash": 1},
            "2026-03-12": {"trash": 2, "phd": 3},
            "2026-03-11": {"interesting": 4},
            "lastRunDate": "2026-03-12",
        })
        history = await engine.stats.history(days=2)
        assert [d.date for d in history] == ["2026-03-11", "2026-03-12"]
        assert history[1].total_ms == 5

    async def test_history_includes_stopped_timers(self, engine, clock):
        await engine.controller.start_timer(1, "phd")
        clock.advance(20)
        await engine.controller.stop(1)
        history = await engine.stats.history()
        assert history[-1].date == clock.today()
        assert history[-1].totals["phd"] == 20_000
