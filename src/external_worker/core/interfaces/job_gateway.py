"""JobGatewayPort: port for the remote external job API.

The worker core only talks to this abstraction; the REST adapter and the
in-memory adapter both implement it.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from external_worker.core.models.job import AcquiredJob, ExternalWorkerJob, ListResult
from external_worker.core.models.requests import (
    AcquireJobParams,
    BpmnErrorJobParams,
    CmmnTerminateJobParams,
    CompleteJobParams,
    FailJobParams,
)


class JobGatewayPort(ABC):
    """Remote job lifecycle operations. Failures surface as exceptions."""

    @abstractmethod
    async def list_jobs(self) -> ListResult[ExternalWorkerJob]:
        """Return one page of external worker jobs."""
        raise NotImplementedError

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[ExternalWorkerJob]:
        """Return the job or None if the server does not know it."""
        raise NotImplementedError

    @abstractmethod
    async def acquire_jobs(self, params: AcquireJobParams) -> List[AcquiredJob]:
        """Lock and return up to `numberOfTasks` jobs for a topic (possibly none)."""
        raise NotImplementedError

    @abstractmethod
    async def complete_job(self, params: CompleteJobParams) -> None:
        raise NotImplementedError

    @abstractmethod
    async def fail_job(self, params: FailJobParams) -> None:
        raise NotImplementedError

    @abstractmethod
    async def bpmn_error_job(self, params: BpmnErrorJobParams) -> None:
        """Complete the job by throwing a BPMN (business) error."""
        raise NotImplementedError

    @abstractmethod
    async def cmmn_terminate_job(self, params: CmmnTerminateJobParams) -> None:
        """Complete the job by terminating the CMMN plan item."""
        raise NotImplementedError
