# rest_client/schemas.py
from typing import Any, List, Optional, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExecuteRequest(BaseModel):
    method: str = "GET"
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None

    @field_validator("headers", mode="before")
    @classmethod
    def headers_default(cls, v):
        # the UI sends null when no headers were entered
        return {} if v is None else v


class HistoryQuery(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    page: Optional[int] = None
    limit: Optional[int] = None
    method: Optional[str] = None
    status: Optional[int] = None
    search: Optional[str] = None

    @field_validator("page", "limit", "status", "method", "search", mode="before")
    @classmethod
    def empty_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ExecuteResponse(BaseModel):
    data: Any = None
    status: int
    headers: Dict[str, str]
    responseTime: int


class HistoryItem(BaseModel):
    id: int
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[str] = None
    response: str
    status: int
    responseTime: int
    createdAt: str


class HistoryPage(BaseModel):
    requests: List[HistoryItem]
    totalPages: int
    currentPage: int
    total: int
    hasMore: bool
