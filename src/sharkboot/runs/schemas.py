"""Pydantic schemas for run endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RunCreate(BaseModel):
    message: str = Field(..., min_length=1)
    thread_id: Optional[str] = None
    file_ids: list[str] = []


class ThreadMessageCreate(BaseModel):
    message: str = Field(..., min_length=1)
    file_ids: list[str] = []


class RunMessage(BaseModel):
    id: str
    role: str
    content: str
    created_at: int
    run_id: Optional[str] = None


class RunResponse(BaseModel):
    assistant_id: str
    thread_id: str
    run_id: str
    status: str
    remote_status: Optional[str] = None
    created_at: Optional[int] = None
    cached: bool = True
    latest_messages: Optional[list[RunMessage]] = None
    output_file_ids: Optional[list[str]] = None


class RunSummary(BaseModel):
    run_id: str
    thread_id: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RunFileResponse(BaseModel):
    file_id: str
    filename: str
    bytes: int
    created_at: datetime


class RunInputResult(BaseModel):
    file_id: Optional[str] = None
    filename: str
    status: str
    error: Optional[str] = None


class RunInputUploadResponse(BaseModel):
    file_ids: list[str]
    results: list[RunInputResult]
    success: bool
