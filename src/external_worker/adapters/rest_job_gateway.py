"""REST adapter for the external job API.

Builds URLs and payloads for the `/external-job-api` endpoints, applies the
acquisition and worker id defaults, and parses responses into domain models.
Transport and HTTP errors come from the HttpClientPort as GatewayException.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

from external_worker.core.exceptions import GatewayException
from external_worker.core.interfaces.http_client import HttpClientPort
from external_worker.core.interfaces.job_gateway import JobGatewayPort
from external_worker.core.interfaces.retry import RetryPort
from external_worker.core.models.job import AcquiredJob, ExternalWorkerJob, ListResult
from external_worker.core.models.requests import (
    AcquireJobParams,
    BpmnErrorJobParams,
    CmmnTerminateJobParams,
    CompleteJobParams,
    FailJobParams,
)
from external_worker.core.models.variable import EngineRestVariable
from external_worker.core.settings import logger

JOB_API = "/external-job-api"

DEFAULT_LOCK_DURATION = "PT1M"
DEFAULT_NUMBER_OF_TASKS = 1
DEFAULT_NUMBER_OF_RETRIES = 5


class TransientGatewayError(GatewayException):
    """Wrapper for transient gateway errors that should be retried.

    Used to distinguish retryable errors (connection errors, 502, 503, 504)
    from non-retryable client errors (4xx) in retry logic.
    """

    pass


def _dump_variables(variables: Optional[List[EngineRestVariable]]) -> Optional[List[Dict[str, Any]]]:
    if not variables:
        return None
    return [variable.model_dump(mode="json") for variable in variables]


class RestJobGateway(JobGatewayPort):
    def __init__(
        self,
        http_client: HttpClientPort,
        flowable_host: str,
        worker_id: str,
        retry_port: Optional[RetryPort] = None,
    ) -> None:
        self._http = http_client
        self._base_url = flowable_host.rstrip("/") + JOB_API
        self.worker_id = worker_id
        self._retry = retry_port

    # ---------------- Queries -----------------
    async def list_jobs(self) -> ListResult[ExternalWorkerJob]:
        body = await self._send("list", lambda: self._http.get(f"{self._base_url}/jobs"))
        return ListResult[ExternalWorkerJob].model_validate(body)

    async def get_job(self, job_id: str) -> Optional[ExternalWorkerJob]:
        try:
            body = await self._send(
                "get", lambda: self._http.get(f"{self._base_url}/jobs/{job_id}")
            )
        except GatewayException as exc:
            if exc.response.status == 404:
                logger.debug(f"[gateway:get] job not found job_id={job_id}")
                return None
            raise
        return ExternalWorkerJob.model_validate(body)

    # ---------------- Acquisition -----------------
    async def acquire_jobs(self, params: AcquireJobParams) -> List[AcquiredJob]:
        payload = {
            "topic": params.topic,
            "lockDuration": params.lockDuration or DEFAULT_LOCK_DURATION,
            "numberOfTasks": params.numberOfTasks if params.numberOfTasks is not None else DEFAULT_NUMBER_OF_TASKS,
            "numberOfRetries": params.numberOfRetries if params.numberOfRetries is not None else DEFAULT_NUMBER_OF_RETRIES,
            "workerId": params.workerId or self.worker_id,
            "scopeType": params.scopeType or None,
        }
        body = await self._send(
            "acquire", lambda: self._http.post(f"{self._base_url}/acquire/jobs", json=payload)
        )
        jobs = [AcquiredJob.model_validate(item) for item in body or []]
        logger.debug(f"[gateway:acquire] topic={params.topic} acquired={len(jobs)}")
        return jobs

    # ---------------- Terminal calls -----------------
    async def complete_job(self, params: CompleteJobParams) -> None:
        payload = {
            "variables": _dump_variables(params.variables),
            "workerId": params.workerId or self.worker_id,
        }
        await self._post_job_action(params.jobId, "complete", payload)

    async def fail_job(self, params: FailJobParams) -> None:
        payload: Dict[str, Any] = {"workerId": params.workerId or self.worker_id}
        # unset optional fields are left out of the body
        optional = {
            "errorMessage": params.errorMessage,
            "errorDetails": params.errorDetails,
            "retries": params.retries,
            "retryTimeout": params.retryTimeout,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        await self._post_job_action(params.jobId, "fail", payload)

    async def bpmn_error_job(self, params: BpmnErrorJobParams) -> None:
        payload = {
            "variables": _dump_variables(params.variables),
            "errorCode": params.errorCode,
            "workerId": params.workerId or self.worker_id,
        }
        await self._post_job_action(params.jobId, "bpmnError", payload)

    async def cmmn_terminate_job(self, params: CmmnTerminateJobParams) -> None:
        payload = {
            "variables": _dump_variables(params.variables),
            "workerId": params.workerId or self.worker_id,
        }
        await self._post_job_action(params.jobId, "cmmnTerminate", payload)

    async def _post_job_action(self, job_id: str, action: str, payload: Dict[str, Any]) -> None:
        url = f"{self._base_url}/acquire/jobs/{job_id}/{action}"
        logger.debug(f"[gateway:{action}] POST job_id={job_id} keys={list(payload.keys())}")
        await self._send(action, lambda: self._http.post(url, json=payload))

    # ---------------- Retry handling -----------------
    def _is_transient_error(self, exc: GatewayException) -> bool:
        """Connection errors (mapped to 502), 503 and timeouts (504) are worth retrying."""
        return exc.response.status in (502, 503, 504)

    async def _send(self, operation: str, request: Callable[[], Awaitable[Any]]) -> Any:
        if not self._retry:
            return await request()

        async def attempt():
            try:
                return await request()
            except GatewayException as exc:
                if self._is_transient_error(exc):
                    logger.debug(
                        f"[gateway:{operation}] transient error, will retry: status={exc.response.status}"
                    )
                    raise TransientGatewayError(exc.response) from exc
                raise

        try:
            return await self._retry.execute(
                attempt, exception_types=(TransientGatewayError,)
            )
        except TransientGatewayError as exc:
            logger.error(
                f"[gateway:{operation}] transient error retry exhausted "
                f"status={exc.response.status} title={exc.response.title}"
            )
            raise
