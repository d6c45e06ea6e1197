"""
Bounded Task Queue

Runs a batch of async jobs with at most N in flight.

GUARANTEES:
1. One job failing never stops the others
2. Outcomes come back in input order, whatever the concurrency
3. Once the cancel event is set, jobs that have not started are
   reported as cancelled; jobs already running finish normally
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel, Field

from splitledger.models.ingestion import BatchCommitResult


class TaskStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskOutcome(BaseModel):
    """Result of one job."""

    index: int = Field(..., ge=0)
    status: TaskStatus
    result: Any = None
    error: Optional[str] = None


class BoundedTaskQueue:
    """Run async jobs under an asyncio.Semaphore."""

    def __init__(self, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def run(
        self,
        jobs: Sequence[Callable[[], Awaitable[Any]]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[TaskOutcome]:
        """
        Run every job and collect its outcome.

        Exceptions raised by a job are captured in its outcome.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(index: int, job: Callable[[], Awaitable[Any]]) -> TaskOutcome:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return TaskOutcome(index=index, status=TaskStatus.CANCELLED)
                try:
                    result = await job()
                except Exception as e:
                    return TaskOutcome(index=index, status=TaskStatus.FAILED, error=str(e) or type(e).__name__)
                return TaskOutcome(index=index, status=TaskStatus.SUCCEEDED, result=result)

        return list(await asyncio.gather(
            *(run_one(index, job) for index, job in enumerate(jobs))
        ))


def summarize(outcomes: Sequence[TaskOutcome]) -> BatchCommitResult:
    """Count outcomes by status."""
    return BatchCommitResult(
        created=sum(1 for o in outcomes if o.status == TaskStatus.SUCCEEDED),
        failed=sum(1 for o in outcomes if o.status == TaskStatus.FAILED),
        cancelled=sum(1 for o in outcomes if o.status == TaskStatus.CANCELLED),
    )
