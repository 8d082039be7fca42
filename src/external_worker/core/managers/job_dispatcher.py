"""JobDispatcher: runs the handler for one acquired job and reports its outcome.

Responsibilities:
1. Invoke the handler with the job and a fresh WorkerResultBuilder.
2. Await the handler's result when it is awaitable (async handlers).
3. Execute the returned WorkResult, or complete the job when it returned None.
4. Convert any failure of 1-3 into a best-effort fail call.
"""

from __future__ import annotations

import asyncio
import inspect
import traceback
from typing import Awaitable, Callable, Optional, Union

from external_worker.core.interfaces.job_gateway import JobGatewayPort
from external_worker.core.logging_config import job_id_var
from external_worker.core.managers.work_result import (
    WorkerResultBuilder,
    WorkerResultFailure,
    WorkResult,
)
from external_worker.core.models.job import AcquiredJob
from external_worker.core.models.requests import CompleteJobParams
from external_worker.core.settings import logger

HandlerResult = Optional[WorkResult]
JobHandler = Callable[
    [AcquiredJob, WorkerResultBuilder],
    Union[HandlerResult, Awaitable[HandlerResult]],
]


def render_failure(exc: BaseException) -> str:
    """Render an exception with its traceback as sent in `errorDetails`."""
    return "".join(traceback.format_exception(exc)).rstrip()


class JobDispatcher:
    def __init__(
        self,
        gateway: JobGatewayPort,
        handler: JobHandler,
        run_sync_in_thread: bool = False,
    ) -> None:
        self._gateway = gateway
        self._handler = handler
        # sync handlers otherwise run on the event loop and block every subscription
        self._offload = run_sync_in_thread and not inspect.iscoroutinefunction(handler)

    async def dispatch(self, job: AcquiredJob) -> None:
        """Process one job; never raises unless the calling task is being cancelled."""
        token = job_id_var.set(job.id)
        try:
            try:
                await self._process(job)
            except asyncio.CancelledError as exc:
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    raise
                # raised by the handler itself, not a cancellation of the poll loop
                logger.error(
                    f"[job:dispatch] handler was cancelled job_id={job.id} error={exc!r}"
                )
                await self._report_failure(job, exc)
            except Exception as exc:
                logger.error(
                    f"[job:dispatch] failed to execute job job_id={job.id} error={exc!r}"
                )
                await self._report_failure(job, exc)
        finally:
            job_id_var.reset(token)

    async def _process(self, job: AcquiredJob) -> None:
        builder = WorkerResultBuilder(job)
        if self._offload:
            result = await asyncio.to_thread(self._handler, job, builder)
        else:
            result = self._handler(job, builder)
        if inspect.isawaitable(result):
            result = await result

        if result is None:
            logger.debug(f"[job:dispatch] no result returned, completing job_id={job.id}")
            await self._gateway.complete_job(CompleteJobParams(jobId=job.id))
            return

        if not isinstance(result, WorkResult):
            raise TypeError(
                f"Job handler returned {type(result).__name__}, expected a work result or None"
            )
        logger.debug(
            f"[job:dispatch] executing {type(result).__name__} job_id={job.id}"
        )
        await result.execute(self._gateway)

    async def _report_failure(self, job: AcquiredJob, exc: BaseException) -> None:
        failure = (
            WorkerResultFailure(job)
            .error_message(str(exc) or type(exc).__name__)
            .error_details(render_failure(exc))
        )
        try:
            await failure.execute(self._gateway)
        except Exception as fail_exc:
            # not retried: the job lock expires and the engine hands it out again
            logger.error(
                f"[job:dispatch] reporting failure failed job_id={job.id} error={fail_exc!r}"
            )
