"""
Pydantic request models for the REST API.
"""

from typing import Literal

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Body of ``POST /auth/login``."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TwoFactorRequest(BaseModel):
    """Body of ``POST /auth/2fa``."""

    method: Literal["totp", "emailOtp"]
    code: str = Field(min_length=1)
