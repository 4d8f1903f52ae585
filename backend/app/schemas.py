# backend/app/schemas.py
from pydantic import BaseModel, EmailStr, ConfigDict, Field, field_validator
from typing import Optional, List

from app.core.config import settings


class CamelModel(BaseModel):
    """Request bodies arrive camelCased from the web client; snake_case is accepted too."""

    model_config = ConfigDict(populate_by_name=True)


# --- Auth / users ---
class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        if not 2 <= len(v) <= 50:
            raise ValueError("Name must be between 2 and 50 characters")
        return v

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str
    password: str

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("otp")
    @classmethod
    def _otp_shape(cls, v: str) -> str:
        v = v.strip()
        if len(v) != settings.OTP_LENGTH or not v.isdigit():
            raise ValueError(f"OTP must be {settings.OTP_LENGTH} digits")
        return v


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not 2 <= len(v) <= 50:
            raise ValueError("Name must be between 2 and 50 characters")
        return v


class UpdatePasswordRequest(CamelModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword")


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    points: int = 0

    model_config = ConfigDict(from_attributes=True)


# --- Quiz sessions ---
class StartQuizRequest(CamelModel):
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    type_id: Optional[int] = Field(default=None, alias="typeId")
    quiz_type: Optional[str] = Field(default=None, alias="quizType")
    difficulty: Optional[str] = "medium"
    amount: Optional[int] = Field(default=None, ge=1, le=50)


class AnswerItem(CamelModel):
    question_id: int = Field(alias="questionId")
    answer: Optional[str] = None


class SubmitAnswers(BaseModel):
    answers: List[AnswerItem]

    @field_validator("answers", mode="before")
    @classmethod
    def _reject_positional(cls, v):
        if isinstance(v, list) and any(not isinstance(item, dict) for item in v):
            raise ValueError("answers must be a list of {questionId, answer} objects")
        return v
