"""Nexus checkout exception hierarchy.

Every error carries the HTTP status it maps to and a caller-facing
message in pt-BR. Routers never build error responses themselves; the
application-level handler renders ``{"success": false, "error": message}``.
"""

from typing import Any, Optional


class NexusError(Exception):
    """Base exception for all Nexus checkout errors."""

    status_code = 500

    def __init__(self, message: str = "", code: str = "NEXUS_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(NexusError):
    """Malformed caller input."""

    status_code = 400

    def __init__(self, message: str = "Dados inválidos", field: str = ""):
        self.field = field
        super().__init__(message, code="VALIDATION_ERROR")


class PreconditionError(NexusError):
    """The session is not in a state that allows the operation yet."""

    status_code = 400

    def __init__(self, message: str = "Pagamento não confirmado ainda."):
        super().__init__(message, code="PRECONDITION_FAILED")


class Unauthorized(NexusError):
    """Webhook shared secret mismatch."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED")


class ForbiddenError(NexusError):
    """Operation refused because a prior lifecycle step is missing."""

    status_code = 403

    def __init__(self, message: str = "Operação não permitida."):
        super().__init__(message, code="FORBIDDEN")


class NotFoundError(NexusError):
    """Unknown session or token."""

    status_code = 404

    def __init__(self, message: str = "Sessão não encontrada."):
        super().__init__(message, code="NOT_FOUND")


class ConflictError(NexusError):
    """Duplicate resource or already-processed request."""

    status_code = 409

    def __init__(self, message: str = "Conflito.", code: str = "CONFLICT"):
        super().__init__(message, code=code)


class InternalError(NexusError):
    """Datastore or unexpected failure."""

    status_code = 500

    def __init__(self, message: str = "Erro interno do servidor"):
        super().__init__(message, code="INTERNAL_ERROR")


class UpstreamError(NexusError):
    """A third-party API (payment, email, identity) failed or timed out.

    ``detail`` keeps the provider's raw response for logs; it is never
    sent back to the caller.
    """

    status_code = 502

    def __init__(
        self,
        message: str = "Falha ao comunicar com o provedor de pagamento.",
        detail: Optional[dict[str, Any]] = None,
    ):
        self.detail = detail or {}
        super().__init__(message, code="UPSTREAM_ERROR")
