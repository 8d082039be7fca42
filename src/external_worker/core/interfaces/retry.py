from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, Type


class RetryPort(Protocol):
    """Retries a gateway call that failed with a transient error.

    The gateway decides which errors are transient and passes them as
    `exception_types`; any other exception propagates on the first attempt.
    """

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        exception_types: Optional[Sequence[Type[BaseException]]] = None,
        **kwargs,
    ) -> Any:  # pragma: no cover - protocol
        """Await `func(*args, **kwargs)` until it succeeds or attempts run out.

        Raises:
            The last exception once the attempts are exhausted.
        """
        ...
