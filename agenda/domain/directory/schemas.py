"""Directory domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_br_phone, validate_email


class ProfessionalCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None
    serviceIds: list[int] = []

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_br_phone(v) if v else v

    @field_validator("email")
    @classmethod
    def validate_professional_email(cls, v):
        return validate_email(v)


class ProfessionalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None
    isActive: Optional[bool] = None
    serviceIds: Optional[list[int]] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_br_phone(v) if v else v


class ProfessionalResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None
    isActive: bool
    serviceIds: list[int] = []


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    durationMinutes: int = Field(gt=0, le=24 * 60)
    price: float = Field(default=0, ge=0)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    durationMinutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    price: Optional[float] = Field(default=None, ge=0)
    isActive: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    durationMinutes: int
    price: float
    isActive: bool


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = None
    email: Optional[str] = None
    birthday: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_br_phone(v) if v else v

    @field_validator("email")
    @classmethod
    def validate_client_email(cls, v):
        return validate_email(v)


class ClientResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    birthday: Optional[date] = None
    notes: Optional[str] = None
    totalVisits: int = 0
    totalSpent: float = 0
    lastVisit: Optional[datetime] = None
