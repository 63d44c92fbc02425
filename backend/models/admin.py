from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from enum import Enum

from utils.validators import normalize_phone, validate_password_strength


class AdminRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    REVIEW_OFFICER = "review_officer"
    CUSTOMER_SUPPORT = "customer_support"
    MARKETING_MANAGER = "marketing_manager"


class Department(str, Enum):
    ADMINISTRATION = "administration"
    FINANCE = "finance"
    OPERATIONS = "operations"
    CUSTOMER_SERVICE = "customer_service"
    MARKETING = "marketing"
    TECHNICAL = "technical"
    LEGAL = "legal"


class AdminCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str
    phone: Optional[str] = None
    role: AdminRole = AdminRole.ADMIN
    department: Department = Department.ADMINISTRATION
    job_title: Optional[str] = Field(None, max_length=100)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)
