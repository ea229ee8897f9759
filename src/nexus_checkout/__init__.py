"""Nexus checkout: signup, payment-session lifecycle and account provisioning."""

from nexus_checkout.client import SignupClient
from nexus_checkout.common.documents import is_valid_cnpj, is_valid_cpf, is_valid_tax_id
from nexus_checkout.sessions.state import SessionStatus

__all__ = [
    "SignupClient",
    "SessionStatus",
    "is_valid_cpf",
    "is_valid_cnpj",
    "is_valid_tax_id",
]
__version__ = "0.1.0"
