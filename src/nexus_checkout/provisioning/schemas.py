"""Account creation request/response schemas."""

from pydantic import BaseModel, field_validator

from nexus_checkout.checkout.schemas import CreateCheckoutRequest
from nexus_checkout.common.validation import invalid

PASSWORD_MIN = 8
PASSWORD_MAX = 72


def check_password(value) -> str:
    if not isinstance(value, str) or len(value) < PASSWORD_MIN:
        raise invalid(f"Senha deve ter no mínimo {PASSWORD_MIN} caracteres")
    if len(value) > PASSWORD_MAX:
        raise invalid(f"Senha deve ter no máximo {PASSWORD_MAX} caracteres")
    return value


class CreateAccountRequest(CreateCheckoutRequest):
    """Password equality is checked by the provisioner, after its session checks."""

    password: str
    confirm_password: str

    @field_validator("password", "confirm_password", mode="before")
    @classmethod
    def _check_password(cls, v):
        return check_password(v)


class CreateAccountResponse(BaseModel):
    success: bool = True
    message: str = "Conta criada com sucesso!"
