"""Pydantic schemas for assistant endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class AssistantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    instructions: str = ""
    model: Optional[str] = None
    tool_config: dict[str, Any] = {}


class AssistantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    instructions: Optional[str] = None
    model: Optional[str] = None


class AssistantResponse(BaseModel):
    id: str
    client_id: str
    openai_id: str
    name: str
    instructions: str
    model: str
    tool_config: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssistantDeleteResponse(BaseModel):
    id: str
    vector_store_deleted: bool
    remote_deleted: bool
    local_deleted: bool
