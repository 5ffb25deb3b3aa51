from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import UserRole


class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    role: UserRole
    department: str = Field(min_length=1, max_length=200)

    @field_validator("name", "department")
    @classmethod
    def strip_text(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Value cannot be empty")
        return trimmed

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        # Older clients send "HOD" / "Faculty".
        return value.strip().lower() if isinstance(value, str) else value


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    department: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    role: UserRole | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut
