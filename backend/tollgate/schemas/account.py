"""Account and tenant resource schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tollgate.core.shared_models import AccountRole


class AccountBase(BaseModel):
    """Account base schema."""

    email: EmailStr = Field(..., description="Login email")
    full_name: Optional[str] = Field(None, description="Display name")
    role: AccountRole = Field(default=AccountRole.ADMIN, description="Account role")


class AccountCreate(AccountBase):
    """Account creation schema."""

    is_active: bool = True


class Account(AccountBase):
    """Account schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    is_active: bool
    is_deleted: bool = False
    created_at: datetime


class EmployeeCreate(BaseModel):
    """Employee creation schema."""

    name: str = Field(..., min_length=1)
    email: EmailStr
    department: Optional[str] = None
    account_id: Optional[UUID] = Field(None, description="Login account of the worker, if any")


class Employee(BaseModel):
    """Employee schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    account_id: Optional[UUID] = None
    name: str
    email: str
    department: Optional[str] = None
    is_active: bool
    created_at: datetime


class VisitorCreate(BaseModel):
    """Visitor creation schema."""

    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class Visitor(VisitorCreate):
    """Visitor schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    created_at: datetime


class AppointmentCreate(BaseModel):
    """Appointment creation schema."""

    title: str = Field(..., min_length=1)
    scheduled_for: Optional[datetime] = None


class Appointment(AppointmentCreate):
    """Appointment schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    created_at: datetime
