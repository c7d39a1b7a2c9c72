"""
Pydantic schemas for role management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from tenant_rbac.features.permissions.schemas import PermissionResponse


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Role name must not be blank")
    return v


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Role name, unique within the organization")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""
    organization_id: str = Field(..., min_length=1, description="Owning organization")
    is_default: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _clean_name(v)


class RoleUpdate(BaseModel):
    """Schema for updating a role. Only the fields that are set are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)


class SetRolePermissions(BaseModel):
    """Replace a role's permission set with exactly this list."""
    permission_ids: List[str] = Field(default_factory=list)

    @field_validator("permission_ids")
    @classmethod
    def dedupe(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    organization_id: str
    is_default: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []

    model_config = ConfigDict(from_attributes=True)
