# Logging adapter for library-wide logging
from external_worker.adapters.logging_adapter import LoggingAdapter

from typing import Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings
from rich import print

from external_worker.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class WorkerSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    EXW_LOG_LEVEL: str = "INFO"
    EXW_FLOWABLE_HOST: str = "https://cloud.flowable.com/work"
    # generated once per client when unset
    EXW_WORKER_ID: Optional[str] = None
    EXW_USERNAME: Optional[str] = None
    EXW_PASSWORD: Optional[SecretStr] = None
    EXW_BEARER_TOKEN: Optional[SecretStr] = None
    EXW_REQUEST_TIMEOUT: float = 10.0  # seconds
    # 1 = single attempt, no retry of transient gateway errors
    EXW_REQUEST_RETRY_ATTEMPTS: int = 1

    # Subscription used by the `external-worker` runner
    EXW_TOPIC: Optional[str] = None
    EXW_LOCK_DURATION: str = "PT1M"
    EXW_NUMBER_OF_TASKS: Optional[int] = None
    EXW_NUMBER_OF_RETRIES: Optional[int] = None
    EXW_SCOPE_TYPE: Optional[str] = None
    EXW_WAIT_PERIOD_SECONDS: float = 30.0
    # Job handler as "package.module:function"
    EXW_HANDLER: Optional[str] = None
    # run a sync handler in a worker thread instead of on the event loop
    EXW_RUN_SYNC_IN_THREAD: bool = False

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("External worker settings:")
        print(self)

    @field_validator("EXW_FLOWABLE_HOST", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Drop trailing slashes, the API paths are appended with a leading one."""
        return value.rstrip("/") if isinstance(value, str) else value


app_settings = WorkerSettings()

logger = LoggingAdapter("external_worker", app_settings.EXW_LOG_LEVEL)
