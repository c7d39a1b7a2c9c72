"""
Pydantic schemas for the permission catalog.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from tenant_rbac.features.permissions.models import PermissionType


class PermissionSeed(BaseModel):
    """One entry of the versioned catalog definition."""
    feature_area: str = Field(..., min_length=1, max_length=100)
    permission_type: PermissionType
    description: str = Field("", max_length=1000)

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> tuple[str, str]:
        return (self.feature_area, self.permission_type.value)


class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: str
    feature_area: str
    permission_type: PermissionType
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
