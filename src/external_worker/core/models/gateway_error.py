from typing import Optional

from pydantic import BaseModel


class GatewayErrorResponse(BaseModel):
    title: str
    status: int
    detail: str
    url: Optional[str] = None

    def __str__(self) -> str:
        location = f" url={self.url}" if self.url else ""
        return f"{self.title} ({self.status}): {self.detail}{location}"
