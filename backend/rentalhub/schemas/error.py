from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """JSON envelope returned for every failed API request."""
    error: ErrorDetail
    request_id: Optional[str] = None
