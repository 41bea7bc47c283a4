from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    user = "USER"
    admin = "ADMIN"


class HealthResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Stable error code, e.g. MISSING_FIELDS")


# Request bodies. Every field is optional so a handler can report the
# domain error code (MISSING_FIELDS, BAD_ROLE, ...) itself.


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email address (stored lower-cased)")
    password: Optional[str] = Field(None, description="Password")


class LoginRequest(BaseModel):
    email: Optional[str] = Field(None, description="Email address (matched case-insensitively)")
    password: Optional[str] = Field(None, description="Password")


class ServiceRequestCreate(BaseModel):
    user_id: Optional[int] = Field(None, description="Owner user id")
    insurance_id: Optional[int] = Field(None, description="Linked insurance product id")
    full_name: Optional[str] = None
    phone: Optional[str] = None
    car_model: Optional[str] = None
    car_year: Optional[int] = None
    notes: Optional[str] = None


class InsuranceCreate(BaseModel):
    title_ar: Optional[str] = None
    title_en: Optional[str] = None
    category_ar: Optional[str] = None
    category_en: Optional[str] = None
    price_from: Optional[Decimal] = Field(None, description="Starting price")
    description_ar: Optional[str] = None
    description_en: Optional[str] = None


class LawCreate(BaseModel):
    title_ar: Optional[str] = None
    title_en: Optional[str] = None
    description_ar: Optional[str] = None
    description_en: Optional[str] = None


class FAQCreate(BaseModel):
    question_ar: Optional[str] = None
    question_en: Optional[str] = None
    answer_ar: Optional[str] = None
    answer_en: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Optional[str] = Field(None, description="ADMIN or USER")


class StatusUpdate(BaseModel):
    status: Optional[str] = Field(None, description="New request status")


# Rows. Columns beyond the declared ones (timestamps, etc.) pass through.


class Row(BaseModel):
    model_config = ConfigDict(extra="allow")


class User(Row):
    id: int
    name: Optional[str] = None
    email: str
    role: UserRole


class Insurance(Row):
    id: int
    title_ar: Optional[str] = None
    title_en: Optional[str] = None
    category_ar: Optional[str] = None
    category_en: Optional[str] = None
    price_from: Optional[float] = None
    description_ar: Optional[str] = None
    description_en: Optional[str] = None


class Law(Row):
    id: int
    title_ar: Optional[str] = None
    title_en: Optional[str] = None
    description_ar: Optional[str] = None
    description_en: Optional[str] = None


class FAQ(Row):
    id: int
    question_ar: Optional[str] = None
    question_en: Optional[str] = None
    answer_ar: Optional[str] = None
    answer_en: Optional[str] = None


class ServiceRequest(Row):
    id: int
    user_id: int
    insurance_id: Optional[int] = None
    full_name: str
    phone: str
    car_model: str
    car_year: int
    notes: Optional[str] = None
    status: Optional[str] = None


class MyServiceRequest(ServiceRequest):
    title_en: Optional[str] = None
    title_ar: Optional[str] = None


class AdminServiceRequest(ServiceRequest):
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    ins_title_en: Optional[str] = None
    ins_title_ar: Optional[str] = None
