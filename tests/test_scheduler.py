"""
Tests for the time-budget scheduler.
"""
import pytest

from flaneur.core.exceptions import QuotaExhaustedError
from flaneur.pipeline.scheduler import PhaseConfig, StopReason, TimeBudgetScheduler
from tests.conftest import FakeClock


def make_scheduler(clock: FakeClock, global_budget: float = 280.0, reserve: float = 0.0):
    return TimeBudgetScheduler(
        global_budget,
        clock=clock.monotonic,
        sleep=clock.sleep,
        describe=lambda item: f"item {item}",
        reserve=reserve,
    )


class TestTimeBudgetScheduler:
    """Test batching, budgets and quota handling."""

    @pytest.mark.asyncio
    async def test_drains_queue_in_batches_with_pacing(self):
        clock = FakeClock()
        scheduler = make_scheduler(clock)
        seen = []

        async def handler(item):
            seen.append(item)
            return item * 2

        config = PhaseConfig(name="briefs", concurrency=2, pacing_delay=1.5)
        result = await scheduler.run_phase(config, [1, 2, 3, 4, 5], handler)

        assert seen == [1, 2, 3, 4, 5]
        assert result.processed == 5
        assert result.succeeded == 5
        assert result.stop_reason is StopReason.COMPLETED
        assert result.remaining == 0
        # Three batches, pacing only between them
        assert clock.sleeps == [1.5, 1.5]
        assert [o.value for o in result.outcomes] == [2, 4, 6, 8, 10]

    @pytest.mark.asyncio
    async def test_item_failures_are_isolated(self):
        clock = FakeClock()
        scheduler = make_scheduler(clock)

        async def handler(item):
            if item == 2:
                raise ValueError("bad row")
            return item

        config = PhaseConfig(name="articles", concurrency=2, pacing_delay=0)
        result = await scheduler.run_phase(config, [1, 2, 3], handler)

        assert result.processed == 3
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.errors == ["item 2: bad row"]
        assert result.stop_reason is StopReason.COMPLETED

    @pytest.mark.asyncio
    async def test_phase_budget_stops_admission(self):
        clock = FakeClock()
        scheduler = make_scheduler(clock)

        async def handler(item):
            clock.advance(50)

        config = PhaseConfig(name="briefs", concurrency=1, phase_budget=100, pacing_delay=0)
        result = await scheduler.run_phase(config, [1, 2, 3, 4, 5], handler)

        assert result.processed == 2
        assert result.stop_reason is StopReason.PHASE_BUDGET
        assert result.remaining == 3
        assert result.budget_stopped

    @pytest.mark.asyncio
    async def test_global_budget_accounts_for_reserve(self):
        clock = FakeClock()
        scheduler = make_scheduler(clock, global_budget=100, reserve=22)

        async def handler(item):
            clock.advance(40)

        config = PhaseConfig(name="briefs", concurrency=1, phase_budget=1000, pacing_delay=0)
        result = await scheduler.run_phase(config, [1, 2, 3, 4], handler)

        # Admitted at t=0 and t=40; at t=80 the reserve would overrun the budget
        assert result.processed == 2
        assert result.stop_reason is StopReason.GLOBAL_BUDGET
        assert result.remaining == 2
        assert not scheduler.global_expired

    @pytest.mark.asyncio
    async def test_in_flight_batch_always_finishes(self):
        clock = FakeClock()
        scheduler = make_scheduler(clock, global_budget=10)

        async def handler(item):
            clock.advance(30)
            return item

        config = PhaseConfig(name="briefs", concurrency=3, pacing_delay=0)
        result = await scheduler.run_phase(config, [1, 2, 3, 4], handler)

        assert result.processed == 3
        assert result.succeeded == 3
        assert result.stop_reason is StopReason.GLOBAL_BUDGET
        assert scheduler.global_expired

    @pytest.mark.asyncio
    async def test_quota_error_drains_queue(self):
        clock = FakeClock()
        scheduler = make_scheduler(clock)

        async def handler(item):
            if item == 2:
                raise QuotaExhaustedError()
            return item

        config = PhaseConfig(name="briefs", concurrency=2, pacing_delay=0)
        result = await scheduler.run_phase(config, [1, 2, 3, 4, 5, 6], handler)

        assert result.processed == 2
        assert result.succeeded == 1
        assert result.failed == 1
        assert result.stop_reason is StopReason.QUOTA
        assert result.remaining == 4
        assert not result.budget_stopped

    @pytest.mark.asyncio
    async def test_empty_queue(self):
        scheduler = make_scheduler(FakeClock())

        async def handler(item):
            raise AssertionError("not called")

        result = await scheduler.run_phase(PhaseConfig(name="briefs"), [], handler)
        assert result.processed == 0
        assert result.stop_reason is StopReason.COMPLETED
