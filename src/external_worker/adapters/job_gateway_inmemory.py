"""In-memory implementation of JobGatewayPort.

Async-safe using an asyncio.Lock. Jobs are enqueued per topic as batches;
each acquisition hands out the next batch (or nothing). Terminal calls are
recorded so local runs and tests can inspect what the worker reported.
Not a substitute for the engine: locks, retries and timeouts are not modelled.
"""
from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from copy import deepcopy
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from external_worker.core.interfaces.job_gateway import JobGatewayPort
from external_worker.core.models.job import AcquiredJob, ExternalWorkerJob, ListResult
from external_worker.core.models.requests import (
    AcquireJobParams,
    BpmnErrorJobParams,
    CmmnTerminateJobParams,
    CompleteJobParams,
    FailJobParams,
)


class InMemoryJobGateway(JobGatewayPort):
    def __init__(self, worker_id: str = "in-memory-worker") -> None:
        self.worker_id = worker_id
        self._batches: Dict[str, Deque[List[AcquiredJob]]] = defaultdict(deque)
        self._jobs: Dict[str, AcquiredJob] = {}
        self._failures: Dict[Tuple[str, Optional[str]], Exception] = {}
        self._lock = asyncio.Lock()
        # (operation, params) in call order
        self.calls: List[Tuple[str, Any]] = []
        # event loop timestamps of every acquisition
        self.acquire_times: List[float] = []

    def enqueue(self, topic: str, jobs: Sequence[AcquiredJob]) -> None:
        """Queue one acquisition batch for a topic; an empty sequence yields an empty batch."""
        batch = list(jobs)
        for job in batch:
            self._jobs[job.id] = job
        self._batches[topic].append(batch)

    def inject_failure(self, operation: str, exc: Exception, job_id: Optional[str] = None) -> None:
        """Make `operation` raise `exc` (for one job id, or for every call when None)."""
        self._failures[(operation, job_id)] = exc

    def calls_for(self, operation: str) -> List[Any]:
        return [params for name, params in self.calls if name == operation]

    def _check_failure(self, operation: str, job_id: Optional[str] = None) -> None:
        exc = self._failures.get((operation, job_id)) or self._failures.get((operation, None))
        if exc is not None:
            raise exc

    async def _record(self, operation: str, params: Any, job_id: Optional[str] = None) -> None:
        async with self._lock:
            self.calls.append((operation, deepcopy(params)))
            self._check_failure(operation, job_id)
            if job_id is not None:
                self._jobs.pop(job_id, None)

    async def list_jobs(self) -> ListResult[ExternalWorkerJob]:
        async with self._lock:
            data = [ExternalWorkerJob.model_validate(job.model_dump()) for job in self._jobs.values()]
            return ListResult[ExternalWorkerJob](
                data=data, total=len(data), start=0, sort="id", order="asc", size=len(data)
            )

    async def get_job(self, job_id: str) -> Optional[ExternalWorkerJob]:
        async with self._lock:
            job = self._jobs.get(job_id)
            return ExternalWorkerJob.model_validate(job.model_dump()) if job else None

    async def acquire_jobs(self, params: AcquireJobParams) -> List[AcquiredJob]:
        async with self._lock:
            self.acquire_times.append(asyncio.get_running_loop().time())
            self.calls.append(("acquire", deepcopy(params)))
            self._check_failure("acquire")
            batches = self._batches.get(params.topic)
            if not batches:
                return []
            return batches.popleft()

    async def complete_job(self, params: CompleteJobParams) -> None:
        await self._record("complete", params, params.jobId)

    async def fail_job(self, params: FailJobParams) -> None:
        await self._record("fail", params, params.jobId)

    async def bpmn_error_job(self, params: BpmnErrorJobParams) -> None:
        await self._record("bpmn_error", params, params.jobId)

    async def cmmn_terminate_job(self, params: CmmnTerminateJobParams) -> None:
        await self._record("cmmn_terminate", params, params.jobId)
