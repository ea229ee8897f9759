"""Shared Pydantic schemas for the Nexus checkout service."""

from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "nexus-checkout"


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class MessageResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
