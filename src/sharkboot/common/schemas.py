"""Shared Pydantic schemas for SharkBoot."""

from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "sharkboot"


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: Any = None


class OkResponse(BaseModel):
    ok: bool = True
