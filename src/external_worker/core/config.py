"""Configuration models for the worker client and its subscriptions.

Pydantic-based, immutable once created. `from_app_settings` factories build
them from `WorkerSettings` in the composition root; tests construct them
directly.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from external_worker.core.models.requests import AcquireJobParams

DEFAULT_FLOWABLE_HOST = "https://cloud.flowable.com/work"


def generate_worker_id() -> str:
    return f"python-worker-{uuid.uuid4().hex[:12]}"


class WorkerClientConfig(BaseModel):
    """Client-level settings shared by all subscriptions of one client.

    Attributes:
        flowable_host: Base address of the engine; the job API path is appended
        worker_id: Worker id sent with every call; generated once when omitted
        username / password: Basic authentication credentials
        bearer_token: Token sent as `Authorization: Bearer ...`
        request_timeout: Total timeout in seconds for a single HTTP request
        request_retry_attempts: Attempts for transient gateway errors (1 = no retry)
    """

    flowable_host: str = Field(default=DEFAULT_FLOWABLE_HOST, min_length=1)
    worker_id: str = Field(default_factory=generate_worker_id, min_length=1)
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    bearer_token: Optional[SecretStr] = None
    request_timeout: float = Field(default=10.0, gt=0)
    request_retry_attempts: int = Field(default=1, ge=1, le=10)
    retry_wait_initial: float = Field(default=0.2, gt=0)
    retry_wait_max: float = Field(default=2.0, gt=0)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @field_validator("flowable_host", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value):
        return value.rstrip("/") if isinstance(value, str) else value

    @field_validator("worker_id", mode="before")
    @classmethod
    def default_worker_id(cls, value):
        # explicit None / "" from settings falls back to a generated id
        return value or generate_worker_id()

    @model_validator(mode="after")
    def check_credentials(self) -> "WorkerClientConfig":
        if (self.username is None) != (self.password is None):
            raise ValueError("username and password must be given together")
        if self.username is not None and self.bearer_token is not None:
            raise ValueError("use either basic credentials or a bearer token, not both")
        return self

    @classmethod
    def from_app_settings(cls, settings) -> "WorkerClientConfig":
        """Build the client config from a WorkerSettings instance."""
        return cls(
            flowable_host=settings.EXW_FLOWABLE_HOST,
            worker_id=settings.EXW_WORKER_ID,
            username=settings.EXW_USERNAME,
            password=settings.EXW_PASSWORD,
            bearer_token=settings.EXW_BEARER_TOKEN,
            request_timeout=settings.EXW_REQUEST_TIMEOUT,
            request_retry_attempts=settings.EXW_REQUEST_RETRY_ATTEMPTS,
        )


class SubscriptionConfig(BaseModel):
    """Settings of one poll loop bound to a topic.

    Unset acquisition fields are defaulted by the gateway (lock duration
    PT1M, one task, five retries, the client worker id, no scope type).
    """

    topic: str = Field(min_length=1)
    lock_duration: Optional[str] = Field(
        default=None,
        description="ISO-8601 duration the acquired jobs stay locked, e.g. PT1M",
    )
    number_of_tasks: Optional[int] = Field(default=None, ge=1)
    number_of_retries: Optional[int] = Field(default=None, ge=0)
    worker_id: Optional[str] = None
    scope_type: Optional[str] = None
    wait_period_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Seconds to wait before polling again after an empty acquisition",
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    def to_acquire_params(self) -> AcquireJobParams:
        return AcquireJobParams(
            topic=self.topic,
            lockDuration=self.lock_duration,
            numberOfTasks=self.number_of_tasks,
            numberOfRetries=self.number_of_retries,
            workerId=self.worker_id,
            scopeType=self.scope_type,
        )

    @classmethod
    def from_app_settings(cls, settings) -> "SubscriptionConfig":
        return cls(
            topic=settings.EXW_TOPIC,
            lock_duration=settings.EXW_LOCK_DURATION,
            number_of_tasks=settings.EXW_NUMBER_OF_TASKS,
            number_of_retries=settings.EXW_NUMBER_OF_RETRIES,
            scope_type=settings.EXW_SCOPE_TYPE,
            wait_period_seconds=settings.EXW_WAIT_PERIOD_SECONDS,
        )
