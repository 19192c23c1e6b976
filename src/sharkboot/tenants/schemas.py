"""Pydantic schemas for auth and client endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class FacebookCodeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    redirect_uri: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    client_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class ClientResponse(BaseModel):
    id: str
    name: str
    plan: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PlanResponse(BaseModel):
    plan: str
    current: int
    limit: int
    can_add: bool


class ProfileResponse(BaseModel):
    client: ClientResponse
    user: UserResponse
    plan: PlanResponse


class StatsResponse(BaseModel):
    assistants: int
    members: int
    whatsapp_numbers: int


class FacebookLinkResponse(BaseModel):
    linked: bool = True
    provider_id: str
