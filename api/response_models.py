"""
Shared Pydantic models for the prioritizer API.

Response models give FastAPI the type information it needs for the
OpenAPI schema; request models validate bodies before they reach the
service.

Usage:
    from api.response_models import MutationResponse, ListResponse

    @router.post("/endpoint", response_model=MutationResponse)
    def my_endpoint(): ...
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== List Envelope ====
# Shape: {items, total}


class ListResponse(BaseModel):
    """Standard list endpoint response."""

    items: list[Any] = Field(default_factory=list, description="Result items")
    total: int = Field(description="Total count")


# ==== Mutation Result ====
# Used by endpoints that return {success: bool, ...}.


class MutationResponse(BaseModel):
    """Standard mutation result."""

    success: bool = Field(description="Whether the operation succeeded")
    error: str | None = Field(default=None, description="Why the operation failed")

    model_config = {"extra": "allow"}


class DetailResponse(BaseModel):
    """Single entity or state document; shape varies per endpoint."""

    model_config = {"extra": "allow"}


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or error")
    version: str = Field(description="Package version")
    timestamp: str = Field(description="ISO timestamp")


# ==== Request Bodies ====


class AddItemRequest(BaseModel):
    name: str = Field(description="Item name")
    link: str | None = Field(default=None, description="Optional http(s) link")


class BulkAddRequest(BaseModel):
    text: str = Field(description="One item per line; 'name, https://link' attaches a link")


class SetPropertyRequest(BaseModel):
    dimension: str = Field(description="urgency, value or duration")
    value: int = Field(description="Level 0-3")


class ActiveRequest(BaseModel):
    active: bool


class NoteRequest(BaseModel):
    text: str


class StageRequest(BaseModel):
    stage: str = Field(description="Target stage name, e.g. 'value' or 'Results'")


class LockRequest(BaseModel):
    locked: bool


class BucketFieldRequest(BaseModel):
    value: Any = Field(description="New field value (weight, limit, title or description)")


class ReorderRequest(BaseModel):
    direction: str = Field(description="up or down")


class SurveyRequest(BaseModel):
    scopeConfidence: dict[str, Any] = Field(default_factory=dict)
    urgencyConfidence: dict[str, Any] = Field(default_factory=dict)
    valueConfidence: dict[str, Any] = Field(default_factory=dict)
    durationConfidence: dict[str, Any] = Field(default_factory=dict)


class ResetRequest(BaseModel):
    scope: str = Field(default="all", description="all, items or settings")
