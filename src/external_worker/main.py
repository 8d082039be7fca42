# main.py
import asyncio
import importlib
import signal

from pydantic import ValidationError

from external_worker.client import ExternalWorkerClient
from external_worker.core.config import SubscriptionConfig, WorkerClientConfig
from external_worker.core.exceptions import HandlerImportError, WorkerConfigurationError
from external_worker.core.logging_config import configure_logging
from external_worker.core.managers.job_dispatcher import JobHandler
from external_worker.core.settings import app_settings, logger


# main lives at the outermost layer (not in core)
# Reads settings, loads the handler, wires the client and
# runs one subscription until the process is told to stop


def load_handler(handler_path: str) -> JobHandler:
    """Import a handler given as `package.module:function`."""
    module_name, sep, attribute = handler_path.partition(":")
    if not sep or not module_name or not attribute:
        raise HandlerImportError(handler_path, "expected 'module:function'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise HandlerImportError(handler_path, str(exc)) from exc
    handler = getattr(module, attribute, None)
    if handler is None or not callable(handler):
        raise HandlerImportError(handler_path, f"'{attribute}' is not a callable in {module_name}")
    return handler


async def run_worker(settings=app_settings) -> None:
    if not settings.EXW_TOPIC:
        raise WorkerConfigurationError("EXW_TOPIC must be set to run the worker")
    if not settings.EXW_HANDLER:
        raise WorkerConfigurationError("EXW_HANDLER must be set to run the worker")

    handler = load_handler(settings.EXW_HANDLER)
    try:
        client_config = WorkerClientConfig.from_app_settings(settings)
        subscription_config = SubscriptionConfig.from_app_settings(settings)
    except ValidationError as exc:
        raise WorkerConfigurationError(f"invalid worker settings: {exc}") from exc

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            pass

    async with ExternalWorkerClient(client_config) as client:
        subscription = client.subscribe(
            subscription_config, handler, run_sync_in_thread=settings.EXW_RUN_SYNC_IN_THREAD
        )
        logger.info(
            f"[worker:run] worker_id={client.worker_id} topic={subscription.topic} handler={settings.EXW_HANDLER}"
        )
        closed = asyncio.create_task(subscription.wait_closed())
        stopping = asyncio.create_task(stop.wait())
        await asyncio.wait({closed, stopping}, return_when=asyncio.FIRST_COMPLETED)
        stopping.cancel()
        if subscription.exception() is not None:
            logger.error(f"[worker:run] subscription stopped error={subscription.exception()!r}")
        logger.info("[worker:run] shutting down, waiting for in-flight jobs")
    # client.close() has cancelled the subscription and awaited the loop


def main():
    configure_logging(app_settings.EXW_LOG_LEVEL)
    app_settings.print_settings(logger)
    try:
        asyncio.run(run_worker())
    except WorkerConfigurationError as exc:
        logger.error(f"[worker:config] {exc}")
        raise SystemExit(2)


if __name__ == "__main__":
    main()
