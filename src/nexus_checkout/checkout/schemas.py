"""Checkout request/response schemas."""

import uuid

from pydantic import BaseModel, field_validator

from nexus_checkout.common.validation import invalid


class CreateCheckoutRequest(BaseModel):
    session_id: str

    @field_validator("session_id", mode="before")
    @classmethod
    def _check_uuid(cls, v):
        try:
            return str(uuid.UUID(str(v).strip()))
        except (TypeError, ValueError, AttributeError):
            raise invalid("ID da sessão inválido")


class CreateCheckoutResponse(BaseModel):
    success: bool = True
    checkout_url: str
    session_id: str
