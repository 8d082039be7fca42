from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel


class VariableType(StrEnum):
    string = "string"
    short = "short"
    integer = "integer"
    long = "long"
    double = "double"
    boolean = "boolean"
    date = "date"
    instant = "instant"
    localDate = "localDate"
    localDateTime = "localDateTime"
    json = "json"


class EngineRestVariable(BaseModel):
    """Named, typed value exchanged with the engine.

    `type` accepts any string; `VariableType` lists the tags the engine knows
    out of the box. A set `valueUrl` means the content is stored externally and
    must be fetched by the caller.
    """

    name: str
    type: VariableType | str
    value: Any = None
    valueUrl: Optional[str] = None
