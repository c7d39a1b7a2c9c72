"""
Pydantic schemas for user-role assignments.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from tenant_rbac.features.roles.schemas import RoleResponse


class AssignRoleToUser(BaseModel):
    """Schema for assigning a role to a user in an organization."""
    user_id: str = Field(..., min_length=1, description="User ID")
    role_id: str = Field(..., min_length=1, description="Role ID")
    organization_id: str = Field(..., min_length=1, description="Organization ID")
    assigned_by_id: Optional[str] = Field(None, description="Granting actor, 'system' for seed grants")


class UserRoleResponse(BaseModel):
    """Schema for user-role assignment response."""
    id: str
    user_id: str
    role_id: str
    organization_id: str
    assigned_by_id: Optional[str]
    assigned_at: datetime
    role: Optional[RoleResponse] = None

    model_config = ConfigDict(from_attributes=True)
