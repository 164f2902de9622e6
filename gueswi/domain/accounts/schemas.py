"""Account domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email

PLANS = ("starter", "growth")


class RegisterRequest(BaseModel):
    """Schema for self-service signup"""

    username: Optional[str] = None
    email: str
    password: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @field_validator("username")
    @classmethod
    def strip_username(cls, v):
        if v is not None:
            v = v.strip()
        return v or None


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """Public view of a user (never includes the password hash)"""

    id: str
    username: str
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    role: str
    tenantId: Optional[str] = None
    createdAt: Optional[datetime] = None


class WhoAmIResponse(BaseModel):
    id: str
    email: str
    role: str
    tenantId: Optional[str] = None


class TenantData(BaseModel):
    name: str
    industry: Optional[str] = None
    employeeCount: Optional[str] = None
    estimatedExtensions: Optional[int] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Tenant name is required")
        return v


class OnboardingRequest(BaseModel):
    tenantData: TenantData
    selectedPlan: str

    @field_validator("selectedPlan")
    @classmethod
    def check_plan(cls, v):
        if v not in PLANS:
            raise ValueError(f"Plan must be one of: {', '.join(PLANS)}")
        return v


class TenantResponse(BaseModel):
    id: str
    name: str
    industry: Optional[str] = None
    employeeCount: Optional[str] = None
    estimatedExtensions: Optional[int] = None
    plan: str
    status: str
    createdAt: Optional[datetime] = None


class OnboardingResponse(BaseModel):
    success: bool
    tenant: TenantResponse
