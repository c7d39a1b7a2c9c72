"""
Pydantic schemas for authorization queries and decisions.
"""
import enum
from pydantic import BaseModel, Field


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


class DecisionReason(str, enum.Enum):
    GRANTED = "granted"
    NO_ROLES = "no_roles"
    MISSING_PERMISSION = "missing_permission"
    ORGANIZATION_MISMATCH = "organization_mismatch"
    INVALID_REQUEST = "invalid_request"
    EVALUATION_ERROR = "evaluation_error"


class Actor(BaseModel):
    """An authenticated actor, as resolved by the authentication collaborator."""
    user_id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)


class DecisionResult(BaseModel):
    """Outcome of an authorization query and why it was reached."""
    decision: Decision
    reason: DecisionReason
    feature_area: str
    permission_type: str

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW
