"""Login responses and the claims carried inside employee tokens."""

from __future__ import annotations

from pydantic import BaseModel, ValidationError, field_validator

from hrflow.core.config import settings


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    employee_id: int


class EmployeeClaims(BaseModel):
    """Decoded ``sub``: the numeric employee id the token was issued to."""

    sub: int
    type: str

    @field_validator("sub", mode="before")
    @classmethod
    def _numeric_subject(cls, value):
        if not str(value).isdigit():
            raise ValueError("subject is not an employee id")
        return int(value)

    @classmethod
    def parse(cls, payload: dict | None) -> "EmployeeClaims | None":
        if payload is None:
            return None
        try:
            return cls.model_validate(payload)
        except ValidationError:
            return None


class RefreshRequest(BaseModel):
    refresh_token: str
