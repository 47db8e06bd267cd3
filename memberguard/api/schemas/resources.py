"""Schemas for resource lifecycle endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ResourceResponse(BaseModel):
    kind: str
    resource_id: str
    state: str
    version: int
    fields: Dict[str, Any] = {}
    entered_at: Optional[datetime] = None
    entered_by: Optional[str] = None
    previous_state: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateResourceRequest(BaseModel):
    resource_id: str = Field(..., min_length=1, max_length=128)
    fields: Dict[str, Any] = {}


class TransitionRequest(BaseModel):
    reason: Optional[str] = None
    notes: Optional[str] = None
    published: Optional[bool] = None
    fields: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TransitionResponse(BaseModel):
    resource: ResourceResponse
    previous_state: Optional[str] = None
    via_override: bool = False
    audited: bool = True
    audit_warning: Optional[str] = None


class AvailableActionsResponse(BaseModel):
    kind: str
    resource_id: str
    state: str
    actions: List[str]


class EntryResponse(BaseModel):
    user_id: str
    draw_id: str
    entered_at: datetime
    created: bool
