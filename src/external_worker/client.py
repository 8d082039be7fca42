"""ExternalWorkerClient: entry point for subscribing handlers to topics.

The client resolves its configuration once (worker id, host, credentials),
owns the HTTP client and gateway, and keeps track of its subscriptions so
`close()` can stop all of them.

    async with ExternalWorkerClient(WorkerClientConfig(flowable_host=host)) as client:
        subscription = client.subscribe(SubscriptionConfig(topic="myTopic"), handle)
        ...
        subscription.cancel()
"""

from __future__ import annotations

from typing import Callable, List, Optional, Set

import aiohttp

from external_worker.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from external_worker.adapters.rest_job_gateway import RestJobGateway
from external_worker.adapters.retry_tenacity import TenacityRetryAdapter
from external_worker.core.config import SubscriptionConfig, WorkerClientConfig
from external_worker.core.interfaces.http_client import HttpClientPort
from external_worker.core.interfaces.job_gateway import JobGatewayPort
from external_worker.core.managers.job_dispatcher import JobDispatcher, JobHandler
from external_worker.core.managers.subscription import ExternalWorkerSubscription
from external_worker.core.models.job import ExternalWorkerJob, ListResult
from external_worker.core.settings import logger


class ExternalWorkerClient:
    """Creates poll-loop subscriptions against one engine.

    Attributes:
        config: Immutable client configuration (worker id resolved at construction)
        gateway: Gateway used by every subscription of this client
    """

    def __init__(
        self,
        config: Optional[WorkerClientConfig] = None,
        gateway: Optional[JobGatewayPort] = None,
        http_client: Optional[HttpClientPort] = None,
        customize_session: Optional[Callable[[aiohttp.ClientSession], None]] = None,
    ) -> None:
        self.config = config or WorkerClientConfig()
        self._subscriptions: Set[ExternalWorkerSubscription] = set()
        self._http: Optional[HttpClientPort] = None
        if gateway is not None:
            self.gateway = gateway
            return

        self._http = http_client or self._create_http_client(customize_session)
        retry_port = None
        if self.config.request_retry_attempts > 1:
            retry_port = TenacityRetryAdapter(
                attempts=self.config.request_retry_attempts,
                wait_initial=self.config.retry_wait_initial,
                wait_max=self.config.retry_wait_max,
                logger=logger,
            )
        self.gateway = RestJobGateway(
            self._http,
            flowable_host=self.config.flowable_host,
            worker_id=self.config.worker_id,
            retry_port=retry_port,
        )

    def _create_http_client(
        self, customize_session: Optional[Callable[[aiohttp.ClientSession], None]]
    ) -> AioHttpClientAdapter:
        auth = None
        if self.config.username is not None and self.config.password is not None:
            auth = aiohttp.BasicAuth(
                self.config.username, self.config.password.get_secret_value()
            )
        bearer_token = (
            self.config.bearer_token.get_secret_value() if self.config.bearer_token else None
        )
        return AioHttpClientAdapter(
            auth=auth,
            bearer_token=bearer_token,
            customize_session=customize_session,
            timeout=self.config.request_timeout,
        )

    @property
    def worker_id(self) -> str:
        return self.config.worker_id

    @property
    def subscriptions(self) -> List[ExternalWorkerSubscription]:
        return list(self._subscriptions)

    async def __aenter__(self) -> "ExternalWorkerClient":
        if self._http is not None:
            await self._http.__aenter__()
        logger.debug(
            f"[client:open] host={self.config.flowable_host} worker_id={self.worker_id}"
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def subscribe(
        self,
        config: SubscriptionConfig,
        handler: JobHandler,
        run_sync_in_thread: bool = False,
    ) -> ExternalWorkerSubscription:
        """Start polling `config.topic` and hand every acquired job to `handler`.

        The handler is called with the job and a WorkerResultBuilder and may
        return a work result, None (complete without variables), or an
        awaitable resolving to either. Must be called from a running event loop.

        A sync handler runs on the event loop and must not block: while it runs
        no other subscription of the process makes progress. Pass
        `run_sync_in_thread=True` to run blocking sync handlers via
        `asyncio.to_thread` instead.
        """
        dispatcher = JobDispatcher(self.gateway, handler, run_sync_in_thread=run_sync_in_thread)
        subscription = ExternalWorkerSubscription(self.gateway, dispatcher, config)
        self._subscriptions.add(subscription)
        subscription.start()
        subscription.add_done_callback(self._subscriptions.discard)
        return subscription

    async def list_jobs(self) -> ListResult[ExternalWorkerJob]:
        return await self.gateway.list_jobs()

    async def get_job(self, job_id: str) -> Optional[ExternalWorkerJob]:
        return await self.gateway.get_job(job_id)

    async def close(self) -> None:
        """Cancel all subscriptions, let in-flight jobs finish, close the HTTP client."""
        subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.cancel()
        for subscription in subscriptions:
            await subscription.wait_closed()
        self._subscriptions.clear()
        if self._http is not None:
            await self._http.close()
