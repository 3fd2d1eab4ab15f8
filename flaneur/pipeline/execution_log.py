"""
Execution logger: one cron_executions audit row per pipeline run.
"""
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from flaneur.core.logging import get_logger
from flaneur.core.monitoring import metrics_collector
from flaneur.schemas.content import CronExecution
from flaneur.services.content_store import ContentStore
from flaneur.utils.dates import utcnow

logger = get_logger(__name__)

MAX_LOGGED_ERRORS = 10


def run_succeeded(succeeded: int, failed: int) -> bool:
    """A run succeeds when it made forward progress."""
    return failed == 0 or succeeded > 0


@dataclass
class ExecutionRecord:
    """Mutable tally filled in by the run and flushed on exit."""
    job_name: str
    started_at: datetime
    succeeded: int = 0
    failed: int = 0
    articles_created: int = 0
    errors: List[str] = field(default_factory=list)
    response_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return run_succeeded(self.succeeded, self.failed)


class ExecutionLogger:
    """Wrap a run and write its audit row; disabled for manual test runs."""

    def __init__(
        self,
        store: ContentStore,
        enabled: bool = True,
        now: Callable[[], datetime] = utcnow,
        triggered_by: str = "cron",
    ):
        self.store = store
        self.enabled = enabled
        self.now = now
        self.triggered_by = triggered_by

    @asynccontextmanager
    async def track(self, job_name: str) -> AsyncIterator[ExecutionRecord]:
        record = ExecutionRecord(job_name=job_name, started_at=self.now())
        started = time.monotonic()
        try:
            yield record
        except Exception as e:
            record.errors.append(f"Run aborted: {e}")
            record.failed = max(record.failed, 1)
            record.succeeded = 0
            raise
        finally:
            duration = time.monotonic() - started
            metrics_collector.record_pipeline_run(
                job_name,
                success=record.success,
                duration=duration,
                succeeded=record.succeeded,
                failed=record.failed,
            )
            if self.enabled:
                await self._write(record)

    async def _write(self, record: ExecutionRecord) -> None:
        execution = CronExecution(
            job_name=record.job_name,
            started_at=record.started_at,
            completed_at=self.now(),
            success=record.success,
            articles_created=record.articles_created,
            errors=record.errors[:MAX_LOGGED_ERRORS] or None,
            response_data=record.response_data,
            triggered_by=self.triggered_by,
        )
        try:
            await self.store.insert_cron_execution(execution)
        except Exception as e:
            logger.error("Failed to log cron execution", job_name=record.job_name, error=str(e))
