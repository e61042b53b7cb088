"""
Pydantic schemas for authentication endpoints.
"""
from pydantic import BaseModel, EmailStr, Field, field_validator


class SignupRequest(BaseModel):
    """Request schema for account signup."""
    full_name: str = Field(..., min_length=1, max_length=200, description="Account holder's full name")
    email: EmailStr = Field(..., description="Login email address")
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    role: str = Field(..., description="Account role", pattern="^(employer|job_seeker)$")

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Validate password length in bytes (bcrypt limit is 72 bytes)."""
        password_bytes = v.encode("utf-8")
        if len(password_bytes) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        if len(password_bytes) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "full_name": "Anna Schmidt",
                "email": "anna@example.com",
                "password": "SecurePass123",
                "role": "employer"
            }
        }


class SignupResponse(BaseModel):
    message: str
    account_id: int
    role: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
