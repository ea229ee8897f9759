"""Pydantic schemas for session status and admin views."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PaymentStatusRequest(BaseModel):
    session_id: str = Field(..., min_length=10, max_length=64)


class PaymentStatusResponse(BaseModel):
    status: str
    paid_at: Optional[datetime] = None
    plan_id: str
    created_user_at: Optional[datetime] = None
    user_email: str


class SessionSummary(BaseModel):
    id: str
    status: str
    user_email: str
    plan_id: str
    amount_cents: int
    provider: Optional[str] = None
    provider_bill_id: Optional[str] = None
    email_verified_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    identity_user_id: Optional[str] = None
    created_user_at: Optional[datetime] = None
    status_pagamento: Optional[str] = None
    ultimo_evento: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentEventResponse(BaseModel):
    id: str
    provider: str
    event_id: Optional[str] = None
    event_type: str
    status_pagamento: str
    outcome: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionDetail(SessionSummary):
    events: list[PaymentEventResponse] = []
