"""Pydantic schemas for WhatsApp endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from sharkboot.tenants.schemas import PlanResponse


class RegisterNumberRequest(BaseModel):
    # Presence is checked by the service so the error lists every missing field.
    waba_id: Optional[str] = None
    phone_number_id: Optional[str] = None
    display_name: Optional[str] = None


class AssignRequest(BaseModel):
    assistant_id: Optional[str] = None


class ConfigUpdate(BaseModel):
    auto_reply_enabled: Optional[bool] = None
    welcome_message: Optional[str] = None
    response_delay_seconds: Optional[int] = Field(None, ge=0, le=300)


class NumberResponse(BaseModel):
    id: str
    phone_number_id: str
    waba_id: str
    display_name: str
    phone_number: str
    status: str
    assistant_id: Optional[str] = None
    assistant_name: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NumberListResponse(BaseModel):
    numbers: list[NumberResponse]
    plan: PlanResponse


class AssignResponse(BaseModel):
    number_id: str
    assistant_id: str
    assistant_name: str
    auto_reply_enabled: bool
    welcome_message: str
    response_delay_seconds: int


class UnassignResponse(BaseModel):
    number_id: str
    previous_assistant_id: str


class NumberConfigResponse(BaseModel):
    id: str
    display_name: str
    phone_number: str
    status: str
    assistant_id: Optional[str] = None
    assistant_name: Optional[str] = None
    auto_reply_enabled: Optional[bool] = None
    welcome_message: Optional[str] = None
    response_delay_seconds: Optional[int] = None


class AvailableAssistant(BaseModel):
    id: str
    name: str
    instructions: str
    created_at: datetime
    assigned_to_whatsapp: Optional[str] = None
    available: bool
