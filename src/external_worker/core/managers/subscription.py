"""ExternalWorkerSubscription: the poll loop bound to one topic.

State machine:

    idle -> polling -> draining -> polling      (batch had jobs, no wait)
                               -> waiting -> polling   (empty batch)
    any -> cancelled   (cancel(); terminal)
    polling -> stopped (acquisition failed; terminal)

Cancellation is cooperative: it interrupts only the idle wait. A handler or
network call in flight runs to completion, and jobs of the current batch are
still dispatched, but no further acquisition is started.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Callable, List, Optional

from external_worker.core.config import SubscriptionConfig
from external_worker.core.interfaces.job_gateway import JobGatewayPort
from external_worker.core.managers.job_dispatcher import JobDispatcher
from external_worker.core.models.job import AcquiredJob
from external_worker.core.settings import logger


class SubscriptionState(StrEnum):
    idle = "idle"
    polling = "polling"
    draining = "draining"
    waiting = "waiting"
    cancelled = "cancelled"
    stopped = "stopped"


class ExternalWorkerSubscription:
    def __init__(
        self,
        gateway: JobGatewayPort,
        dispatcher: JobDispatcher,
        config: SubscriptionConfig,
    ) -> None:
        self._gateway = gateway
        self._dispatcher = dispatcher
        self.config = config
        self.state = SubscriptionState.idle
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[BaseException] = None

    @property
    def topic(self) -> str:
        return self.config.topic

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        """Schedule the poll loop; the first acquisition is not delayed.

        Must be called from within a running event loop.
        """
        if self._task is not None:
            raise RuntimeError(f"Subscription for topic '{self.topic}' already started")
        if self._cancelled:
            return
        logger.info(
            f"[subscription:start] topic={self.topic} wait_period={self.config.wait_period_seconds}s"
        )
        self._task = asyncio.create_task(
            self._poll_loop(), name=f"external-worker:{self.topic}"
        )
        self._task.add_done_callback(self._on_loop_done)

    def cancel(self) -> None:
        """Stop polling. Jobs already dispatched are allowed to finish."""
        if self._cancelled:
            return
        self._cancelled = True
        waiting = self.state == SubscriptionState.waiting
        if self.state in (SubscriptionState.idle, SubscriptionState.waiting):
            self.state = SubscriptionState.cancelled
        if waiting and self._task is not None:
            self._task.cancel()
        logger.info(f"[subscription:cancel] topic={self.topic}")

    unsubscribe = cancel

    def done(self) -> bool:
        return self._task is None or self._task.done()

    def add_done_callback(self, callback: Callable[["ExternalWorkerSubscription"], None]) -> None:
        """Call `callback` with this subscription once its poll loop has exited."""
        if self._task is None:
            callback(self)
            return
        self._task.add_done_callback(lambda _task: callback(self))

    def exception(self) -> Optional[BaseException]:
        """Acquisition error that stopped the loop, if any."""
        return self._error

    async def wait_closed(self) -> None:
        """Wait until the poll loop has exited (after cancel or an acquisition error)."""
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)

    async def _poll_loop(self) -> None:
        while not self._cancelled:
            jobs = await self._acquire()
            await self._drain(jobs)
            if self._cancelled:
                break
            if jobs:
                # a non-empty batch means more work may be queued
                continue
            await self._wait()
        self.state = SubscriptionState.cancelled

    async def _acquire(self) -> List[AcquiredJob]:
        self.state = SubscriptionState.polling
        jobs = await self._gateway.acquire_jobs(self.config.to_acquire_params())
        logger.debug(f"[subscription:poll] topic={self.topic} jobs={len(jobs)}")
        return jobs

    async def _drain(self, jobs: List[AcquiredJob]) -> None:
        self.state = SubscriptionState.draining
        for job in jobs:
            await self._dispatcher.dispatch(job)

    async def _wait(self) -> None:
        self.state = SubscriptionState.waiting
        logger.debug(
            f"[subscription:wait] topic={self.topic} seconds={self.config.wait_period_seconds}"
        )
        await asyncio.sleep(self.config.wait_period_seconds)

    def _on_loop_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self.state = SubscriptionState.cancelled
            return
        exc = task.exception()
        if exc is None:
            return
        self._error = exc
        self.state = SubscriptionState.stopped
        logger.error(
            f"[subscription:error] poll loop stopped topic={self.topic} error={exc!r}"
        )
