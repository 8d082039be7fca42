"""Work results: the terminal outcome a handler hands back for a job.

A handler receives a `WorkerResultBuilder` for its job and returns one of the
results it starts (or None for a plain completion). Each result wraps the
request parameters of exactly one gateway call; `execute` performs that call
once with a copy of them.

    async def handle(job, result):
        if job.get_variable("amount") is None:
            return result.bpmn_error().error_code("missingAmount")
        return result.success().variable("approved", True, "boolean")
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from external_worker.core.interfaces.job_gateway import JobGatewayPort
from external_worker.core.models.job import AcquiredJob
from external_worker.core.models.requests import (
    BpmnErrorJobParams,
    CmmnTerminateJobParams,
    CompleteJobParams,
    FailJobParams,
)
from external_worker.core.models.variable import EngineRestVariable, VariableType


@runtime_checkable
class WorkResult(Protocol):
    async def execute(self, gateway: JobGatewayPort) -> None:
        ...


def _append_variable(params, name: str, value: Any, type: VariableType | str) -> None:
    if params.variables is None:
        params.variables = []
    params.variables.append(EngineRestVariable(name=name, value=value, type=type, valueUrl=None))


class WorkerResultSuccess:
    def __init__(self, job: AcquiredJob):
        self.params = CompleteJobParams(jobId=job.id, variables=None)

    def variable(self, name: str, value: Any, type: VariableType | str) -> "WorkerResultSuccess":
        _append_variable(self.params, name, value, type)
        return self

    async def execute(self, gateway: JobGatewayPort) -> None:
        await gateway.complete_job(self.params.model_copy(deep=True))


class WorkerResultFailure:
    def __init__(self, job: AcquiredJob):
        self.params = FailJobParams(jobId=job.id)

    def error_message(self, error_message: Optional[str]) -> "WorkerResultFailure":
        self.params.errorMessage = error_message
        return self

    def error_details(self, error_details: Optional[str]) -> "WorkerResultFailure":
        self.params.errorDetails = error_details
        return self

    def retries(self, retries: Optional[int]) -> "WorkerResultFailure":
        """Override the number of retries left for the job."""
        self.params.retries = retries
        return self

    def retry_timeout(self, retry_timeout: Optional[str]) -> "WorkerResultFailure":
        """ISO-8601 duration before the job becomes available again, e.g. PT10M."""
        self.params.retryTimeout = retry_timeout
        return self

    async def execute(self, gateway: JobGatewayPort) -> None:
        await gateway.fail_job(self.params.model_copy(deep=True))


class WorkerResultBpmnError:
    def __init__(self, job: AcquiredJob):
        self.params = BpmnErrorJobParams(jobId=job.id)

    def variable(self, name: str, value: Any, type: VariableType | str) -> "WorkerResultBpmnError":
        _append_variable(self.params, name, value, type)
        return self

    def error_code(self, error_code: str) -> "WorkerResultBpmnError":
        self.params.errorCode = error_code
        return self

    async def execute(self, gateway: JobGatewayPort) -> None:
        await gateway.bpmn_error_job(self.params.model_copy(deep=True))


class WorkerResultCmmnTerminate:
    def __init__(self, job: AcquiredJob):
        self.params = CmmnTerminateJobParams(jobId=job.id)

    def variable(self, name: str, value: Any, type: VariableType | str) -> "WorkerResultCmmnTerminate":
        _append_variable(self.params, name, value, type)
        return self

    async def execute(self, gateway: JobGatewayPort) -> None:
        await gateway.cmmn_terminate_job(self.params.model_copy(deep=True))


class WorkerResultBuilder:
    """Starts the result for one acquired job."""

    def __init__(self, job: AcquiredJob):
        self.job = job

    def success(self) -> WorkerResultSuccess:
        return WorkerResultSuccess(self.job)

    def failure(self) -> WorkerResultFailure:
        return WorkerResultFailure(self.job)

    def bpmn_error(self) -> WorkerResultBpmnError:
        return WorkerResultBpmnError(self.job)

    def cmmn_terminate(self) -> WorkerResultCmmnTerminate:
        return WorkerResultCmmnTerminate(self.job)

    # engine-neutral names
    raise_business_error = bpmn_error
    terminate = cmmn_terminate
