from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from external_worker.core.interfaces.logging import LoggingPort


class TenacityRetryAdapter:
    """RetryPort backed by tenacity, used by the REST gateway for transient errors.

    Every attempt but the last that fails with one of the retryable exception
    types is followed by an exponential wait (`wait_initial` doubling up to
    `wait_max`). The final error is re-raised unchanged.
    """

    def __init__(
        self,
        attempts: int = 3,
        wait_initial: float = 0.2,
        wait_max: float = 2.0,
        retry_on: Sequence[Type[BaseException]] = (Exception,),
        logger: Optional[LoggingPort] = None,
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.retry_on = tuple(retry_on)
        self._logger = logger

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        exception_types: Optional[Sequence[Type[BaseException]]] = None,
        **kwargs,
    ) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.wait_initial, max=self.wait_max),
            retry=retry_if_exception_type(tuple(exception_types or self.retry_on)),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func(*args, **kwargs)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        if self._logger is None:
            return
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._logger.warning(
            f"[retry] attempt {retry_state.attempt_number}/{self.attempts} failed, "
            f"next in {delay:.2f}s error={error!r}"
        )
