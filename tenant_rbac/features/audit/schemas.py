"""
Pydantic schemas for the audit trail.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, AliasChoices

from tenant_rbac.features.audit.models import EntityType, ActivityType


class ActivityEventCreate(BaseModel):
    """Schema for appending an audit event."""
    organization_id: str = Field(..., min_length=1)
    entity_type: EntityType
    entity_id: str = Field(..., min_length=1)
    actor_id: str = Field(..., min_length=1)
    type: ActivityType
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ActivityEventResponse(BaseModel):
    """Schema for audit event response."""
    id: str
    organization_id: str
    entity_type: str
    entity_id: str
    actor_id: str
    type: str
    description: Optional[str]
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("event_metadata", "metadata")
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityFilter(BaseModel):
    """Optional filters for querying one organization's audit trail."""
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    actor_id: Optional[str] = None
    type: Optional[ActivityType] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    skip: int = Field(0, ge=0)
    limit: int = Field(50, ge=1, le=500)


class ActivityEventPage(BaseModel):
    """Schema for paginated audit event list."""
    items: List[ActivityEventResponse]
    total: int
    page: int
    page_size: int
    pages: int
