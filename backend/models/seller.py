from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from enum import Enum

from config.constants import DEFAULT_SELLER_COUNTRY
from utils.validators import normalize_phone, validate_password_strength


class BusinessType(str, Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"
    PARTNERSHIP = "partnership"


class BusinessAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = DEFAULT_SELLER_COUNTRY


class BankDetails(BaseModel):
    bank_name: Optional[str] = None
    account_number: Optional[str] = Field(None, pattern=r"^[0-9 ]{4,34}$")
    account_name: Optional[str] = None
    branch_code: Optional[str] = None
    swift_code: Optional[str] = None


class SellerRegistration(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str
    phone: Optional[str] = None

    business_name: str = Field(..., min_length=1, max_length=100)
    business_type: BusinessType
    business_description: Optional[str] = Field(None, max_length=500)
    business_registration_number: Optional[str] = None
    tax_number: Optional[str] = None
    business_address: BusinessAddress = BusinessAddress()
    categories: List[str] = []

    @field_validator("first_name", "last_name", "business_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
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


class SellerProfileUpdate(BaseModel):
    phone: Optional[str] = None
    business_description: Optional[str] = Field(None, max_length=500)
    business_address: Optional[BusinessAddress] = None
    bank_details: Optional[BankDetails] = None
    categories: Optional[List[str]] = None
    business_logo: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)

    @field_validator("business_logo")
    @classmethod
    def check_logo(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.startswith(("http://", "https://", "/")):
            raise ValueError("Logo must be a URL")
        return v


class VerifySeller(BaseModel):
    action: Literal["approve", "reject"]
    reason: Optional[str] = None


class SuspendSeller(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
