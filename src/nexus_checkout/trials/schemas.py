"""Trial signup request/response schemas."""

from typing import Optional

from pydantic import BaseModel, field_validator

from nexus_checkout.common.validation import bounded_text
from nexus_checkout.provisioning.schemas import check_password
from nexus_checkout.verification.schemas import SignupFields


class TrialSignupRequest(SignupFields):
    password: str
    device_fingerprint: Optional[str] = None

    @field_validator("password", mode="before")
    @classmethod
    def _check_password(cls, v):
        return check_password(v)

    @field_validator("device_fingerprint", mode="before")
    @classmethod
    def _check_fingerprint(cls, v):
        if v is None:
            return None
        return bounded_text(
            v, min_length=8, max_length=500,
            message="Identificador de dispositivo inválido",
        )


class TrialSignupResponse(BaseModel):
    success: bool = True
    user_id: str
    salao_id: str
