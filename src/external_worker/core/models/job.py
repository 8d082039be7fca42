from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from external_worker.core.models.variable import EngineRestVariable

T = TypeVar("T")


class ExternalWorkerJob(BaseModel):
    """External worker job as returned by the job query endpoints.

    Field names follow the engine's REST representation.
    """

    model_config = {"extra": "ignore"}

    id: str
    url: Optional[str] = None
    correlationId: Optional[str] = None
    processInstanceId: Optional[str] = None
    processDefinitionId: Optional[str] = None
    executionId: Optional[str] = None
    scopeId: Optional[str] = None
    subScopeId: Optional[str] = None
    scopeDefinitionId: Optional[str] = None
    scopeType: Optional[str] = None
    elementId: Optional[str] = None
    elementName: Optional[str] = None
    retries: Optional[int] = None
    exceptionMessage: Optional[str] = None
    dueDate: Optional[datetime] = None
    createTime: Optional[datetime] = None
    tenantId: Optional[str] = None
    lockOwner: Optional[str] = None
    lockExpirationTime: Optional[datetime] = None


class AcquiredJob(ExternalWorkerJob):
    """Job locked by this worker, including the variables sent along with it.

    Immutable: the worker owns it exclusively until a terminal call is made.
    """

    model_config = {"extra": "ignore", "frozen": True}

    variables: List[EngineRestVariable] = Field(default_factory=list)

    def get_variable(self, name: str) -> Optional[EngineRestVariable]:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None


class ListResult(BaseModel, Generic[T]):
    data: List[T]
    total: int
    start: int = 0
    sort: Optional[str] = None
    order: Optional[str] = None
    size: int = 0
