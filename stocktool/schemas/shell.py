from typing import Literal

from pydantic import BaseModel, Field

WorkerState = Literal["parsed", "installing", "installed", "activating", "activated", "redundant"]


class CachedResponse(BaseModel):
    url: str
    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class WorkerStatus(BaseModel):
    state: WorkerState
    cache_name: str
    claimed: bool
    caches: dict[str, list[str]]
