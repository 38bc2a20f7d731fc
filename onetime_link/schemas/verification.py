"""Schemas for the email verification endpoints."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from onetime_link.core.sanitize import clean_email, clean_single_line


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        return clean_single_line(value)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    name: str
    is_verified: bool


class SendVerificationRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class SendVerificationResponse(BaseModel):
    message: str
    verification_link: str | None = None


class VerificationResponse(BaseModel):
    message: str
    user: UserOut | None = None


class TokenCheckResponse(BaseModel):
    valid: bool
