"""Request/response schemas for signup and email verification."""

from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AliasChoices, BaseModel, Field, field_validator

from nexus_checkout.common.documents import only_digits
from nexus_checkout.common.validation import bounded_text, invalid
from nexus_checkout.sessions.plans import PLAN_PRICES_CENTS


def check_email(value) -> str:
    message = "Informe um email válido"
    value = bounded_text(value, max_length=254, message=message)
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise invalid(message)
    return value


class SignupFields(BaseModel):
    """Establishment and owner fields shared by the paid and trial signups."""

    nome_estabelecimento: str
    endereco: str
    telefone: str
    nome_proprietario: str
    email: str

    @field_validator("nome_estabelecimento", mode="before")
    @classmethod
    def _check_establishment(cls, v):
        return bounded_text(v, max_length=200, message="Informe o nome do estabelecimento")

    @field_validator("endereco", mode="before")
    @classmethod
    def _check_address(cls, v):
        return bounded_text(v, max_length=500, message="Informe o endereço")

    @field_validator("telefone", mode="before")
    @classmethod
    def _check_phone(cls, v):
        return bounded_text(v, max_length=50, message="Informe o telefone")

    @field_validator("nome_proprietario", mode="before")
    @classmethod
    def _check_owner(cls, v):
        return bounded_text(v, max_length=200, message="Informe o nome do proprietário")

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, v):
        return check_email(v)


class StartVerificationRequest(SignupFields):
    """Signup form. Any price field the client sends is ignored."""

    cpf: str = Field(validation_alias=AliasChoices("cpf", "tax_id"))
    plan_id: str

    @field_validator("cpf", mode="before")
    @classmethod
    def _check_tax_id(cls, v):
        message = "CPF ou CNPJ deve ter 11 ou 14 dígitos"
        v = bounded_text(v, min_length=11, max_length=20, message=message)
        if len(only_digits(v)) not in (11, 14):
            raise invalid(message)
        return v

    @field_validator("plan_id", mode="before")
    @classmethod
    def _check_plan(cls, v):
        if v not in PLAN_PRICES_CENTS:
            raise invalid("Plano inválido")
        return v


class StartVerificationResponse(BaseModel):
    success: bool = True
    message: str = "Email de verificação enviado."


class VerifyTokenRequest(BaseModel):
    token: str

    @field_validator("token", mode="before")
    @classmethod
    def _check_token(cls, v):
        return bounded_text(v, max_length=256, message="Token inválido")


class VerifyTokenResponse(BaseModel):
    success: bool = True
    session_id: str
    message: Optional[str] = None
