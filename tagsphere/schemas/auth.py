from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal

from .common import clean_phone, clean_name, clean_six_digits


class SendOTPRequest(BaseModel):
    phone: str
    purpose: Literal["registration", "login", "reset"] = "login"

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return clean_phone(v)


class VerifyOTPRequest(BaseModel):
    phone: str
    otp: str
    name: Optional[str] = None
    purpose: Literal["registration", "login", "reset"] = "login"

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return clean_phone(v)

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str) -> str:
        return clean_six_digits(v, "OTP")

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return clean_name(v) if v else None


class FirebaseVerifyRequest(BaseModel):
    id_token: str = Field(min_length=1)
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return clean_name(v) if v else None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class UserOut(BaseModel):
    id: str
    name: str
    phone: str
    is_verified: bool


class AuthResponse(BaseModel):
    success: bool = True
    is_new_user: bool = False
    message: Optional[str] = None
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: Optional[UserOut] = None


class MeResponse(BaseModel):
    id: str
    name: str
    phone: str
    is_verified: bool
    role: str
    has_emergency_contact: bool
    emergency_contact_name: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return clean_name(v)


class EmergencyContactInput(BaseModel):
    name: str
    phone: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = (v or "").strip()
        if not 2 <= len(v) <= 100:
            raise ValueError("Name must be between 2 and 100 characters")
        return v

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return clean_phone(v)


class PushTokenInput(BaseModel):
    token: str = Field(min_length=1, max_length=512)
    platform: Literal["web", "android", "ios"] = "web"


class PushTokenRemove(BaseModel):
    token: str = Field(min_length=1, max_length=512)
