# dropo/schemas/auth/auth.py
from pydantic import BaseModel, Field, validator
from typing import Optional
import re

PHONE_PATTERN = re.compile(r'^\+\d{8,15}$')


def normalize_phone(v: str) -> str:
    phone_clean = re.sub(r'[\s\-()]', '', v)
    if not PHONE_PATTERN.match(phone_clean):
        raise ValueError('Invalid phone number format. Must include country code (e.g., +919876543210)')
    return phone_clean


class RequestOtpRequest(BaseModel):
    phoneNumber: str = Field(..., description="Phone number with country code")

    @validator('phoneNumber')
    def validate_phone(cls, v):
        return normalize_phone(v)

class RequestOtpResponse(BaseModel):
    requestId: str
    expiresIn: int
    devCode: Optional[str] = None

class VerifyOtpRequest(BaseModel):
    phoneNumber: str = Field(..., description="Phone number with country code")
    code: str = Field(..., description="OTP code (4-8 digits)")
    requestId: Optional[str] = Field(None, description="requestId returned by request-otp")
    name: Optional[str] = Field(None, max_length=100, description="Display name for onboarding")

    @validator('phoneNumber')
    def validate_phone(cls, v):
        return normalize_phone(v)

    @validator('code')
    def validate_code(cls, v):
        v = v.strip()
        if not v.isdigit() or not 4 <= len(v) <= 8:
            raise ValueError('OTP must be 4 to 8 digits')
        return v

    @validator('name')
    def validate_name(cls, v):
        if v is None:
            return v
        return v.strip() or None

class AuthTokensResponse(BaseModel):
    accessToken: str
    refreshToken: str
    expiresIn: int
    refreshExpiresIn: int

class AuthUserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    phoneNumber: str

class VerifyOtpResponse(BaseModel):
    user: AuthUserResponse
    tokens: AuthTokensResponse
    onboardingComplete: bool

class RefreshTokenRequest(BaseModel):
    refreshToken: str = Field(..., min_length=1)

class LogoutRequest(BaseModel):
    refreshToken: Optional[str] = None

class LogoutResponse(BaseModel):
    success: bool = True
