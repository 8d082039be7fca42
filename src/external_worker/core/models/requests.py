"""Request parameter models for the external job REST operations.

Optional fields left as None are filled with defaults by the gateway
(worker id, acquisition defaults) or dropped from the payload (fail fields).
"""

from typing import List, Optional

from pydantic import BaseModel

from external_worker.core.models.variable import EngineRestVariable


class AcquireJobParams(BaseModel):
    topic: str
    lockDuration: Optional[str] = None
    numberOfTasks: Optional[int] = None
    numberOfRetries: Optional[int] = None
    workerId: Optional[str] = None
    scopeType: Optional[str] = None


class CompleteJobParams(BaseModel):
    jobId: str
    variables: Optional[List[EngineRestVariable]] = None
    workerId: Optional[str] = None


class FailJobParams(BaseModel):
    jobId: str
    workerId: Optional[str] = None
    errorMessage: Optional[str] = None
    errorDetails: Optional[str] = None
    retries: Optional[int] = None
    retryTimeout: Optional[str] = None


class BpmnErrorJobParams(BaseModel):
    jobId: str
    variables: Optional[List[EngineRestVariable]] = None
    errorCode: Optional[str] = None
    workerId: Optional[str] = None


class CmmnTerminateJobParams(BaseModel):
    jobId: str
    variables: Optional[List[EngineRestVariable]] = None
    workerId: Optional[str] = None
