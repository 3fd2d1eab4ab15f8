"""
Time-budget scheduler.

A cooperative, non-preemptive loop that drains a phase queue in concurrent
batches. Budgets are checked before each batch is admitted, never while one is
in flight; in-flight calls always finish. Every terminal state yields a
PhaseResult, none raises.
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from flaneur.core.exceptions import is_quota_error
from flaneur.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class StopReason(str, Enum):
    COMPLETED = "completed"
    PHASE_BUDGET = "phase_budget"
    GLOBAL_BUDGET = "global_budget"
    QUOTA = "quota"


@dataclass(frozen=True)
class PhaseConfig:
    """Selection, batching and budget parameters of one phase."""
    name: str
    concurrency: int = 4
    phase_budget: float = 180.0
    pacing_delay: float = 1.0
    lookback: timedelta = timedelta(days=10)
    batch_size: int = 40


@dataclass
class ItemOutcome(Generic[T]):
    """Isolated result of one work item."""
    item: T
    ok: bool
    value: Any = None
    error: Optional[str] = None
    quota: bool = False


@dataclass
class PhaseResult:
    """Counts and terminal state of one phase."""
    name: str
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    outcomes: List[ItemOutcome] = field(default_factory=list)
    stop_reason: StopReason = StopReason.COMPLETED
    remaining: int = 0

    @property
    def budget_stopped(self) -> bool:
        return self.stop_reason in (StopReason.PHASE_BUDGET, StopReason.GLOBAL_BUDGET)


class TimeBudgetScheduler:
    """
    Run phases under a global wall-clock budget.

    The global budget is measured from construction (run start); each phase
    budget is measured from that phase's start. ``reserve`` is held back from
    the global budget when admitting a batch, so a batch whose calls back off
    for the worst case still ends inside the budget.
    """

    def __init__(
        self,
        global_budget: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        describe: Callable[[Any], str] = str,
        reserve: float = 0.0,
    ):
        self.global_budget = global_budget
        self.clock = clock
        self.sleep = sleep
        self.describe = describe
        self.reserve = reserve
        self.started_at = clock()

    @property
    def elapsed(self) -> float:
        return self.clock() - self.started_at

    @property
    def global_expired(self) -> bool:
        return self.elapsed >= self.global_budget

    async def run_phase(
        self,
        config: PhaseConfig,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[Any]],
    ) -> PhaseResult:
        """Drain ``items`` in batches of ``config.concurrency`` through ``handler``."""
        result = PhaseResult(name=config.name)
        queue = list(items)
        phase_started = self.clock()
        batch_size = max(1, config.concurrency)

        while queue:
            if self.elapsed + self.reserve >= self.global_budget:
                result.stop_reason = StopReason.GLOBAL_BUDGET
                break
            if self.clock() - phase_started >= config.phase_budget:
                result.stop_reason = StopReason.PHASE_BUDGET
                break

            batch, queue = queue[:batch_size], queue[batch_size:]
            outcomes = await asyncio.gather(*(self._isolated(handler, item) for item in batch))

            for outcome in outcomes:
                result.processed += 1
                result.outcomes.append(outcome)
                if outcome.ok:
                    result.succeeded += 1
                else:
                    result.failed += 1
                    result.errors.append(outcome.error)

            if any(outcome.quota for outcome in outcomes):
                logger.warning(
                    "Quota exhausted, draining phase queue",
                    phase=config.name,
                    dropped=len(queue),
                )
                result.stop_reason = StopReason.QUOTA
                result.remaining = len(queue)
                queue = []
                break

            if queue and config.pacing_delay > 0:
                await self.sleep(config.pacing_delay)

        if result.stop_reason in (StopReason.GLOBAL_BUDGET, StopReason.PHASE_BUDGET):
            result.remaining = len(queue)
            logger.info(
                "Phase stopped on time budget",
                phase=config.name,
                reason=result.stop_reason.value,
                remaining=result.remaining,
                elapsed=round(self.elapsed, 2),
            )
        return result

    async def _isolated(self, handler: Callable[[T], Awaitable[Any]], item: T) -> ItemOutcome:
        try:
            value = await handler(item)
        except Exception as e:
            logger.warning("Work item failed", item=self.describe(item), error=str(e))
            return ItemOutcome(
                item=item,
                ok=False,
                error=f"{self.describe(item)}: {e}",
                quota=is_quota_error(e),
            )
        return ItemOutcome(item=item, ok=True, value=value)
