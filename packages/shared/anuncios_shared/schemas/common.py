from enum import Enum
from typing import Optional

from pydantic import BaseModel


class OrgRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# Roles allowed to manage an organization's shared resources
MANAGER_ROLES: frozenset[OrgRole] = frozenset({OrgRole.OWNER, OrgRole.ADMIN})


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    details: Optional[dict] = None


class ErrorResponse(BaseModel):
    error: ErrorBody


class SuccessResponse(BaseModel):
    success: bool = True
