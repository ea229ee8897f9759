"""Checkout initiation: at most one live provider billing per session."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.audit.service import AuditService
from nexus_checkout.checkout.abacate_client import (
    AbacatePayClient,
    BillingCustomer,
    BillingProduct,
)
from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.documents import is_valid_tax_id, normalize_phone, only_digits
from nexus_checkout.common.exceptions import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from nexus_checkout.sessions.models import PaymentSessionModel
from nexus_checkout.sessions.plans import amount_for_plan, plan_name
from nexus_checkout.sessions.service import SessionStore
from nexus_checkout.sessions.state import SessionStatus, is_paid

logger = logging.getLogger(__name__)

PROVIDER = "abacatepay"


class CheckoutService:
    """Returns the cached checkout URL or creates a new AbacatePay billing."""

    def __init__(
        self,
        settings: NexusSettings,
        store: SessionStore,
        payment_client: Optional[AbacatePayClient] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.settings = settings
        self.store = store
        self.payment_client = payment_client
        self.audit_service = audit_service

    async def create_checkout(self, session: AsyncSession, session_id: str) -> str:
        row = await self.store.get(session, session_id)
        if row is None:
            raise NotFoundError("Sessão não encontrada.")
        if row.email_verified_at is None:
            raise ForbiddenError("Email não verificado. Verifique seu email antes de pagar.")

        cached = self._cached_url(row)
        if cached:
            logger.info("Returning cached checkout", extra={"session_id": row.id})
            return cached
        if is_paid(row.status):
            raise ConflictError("Pagamento já confirmado para esta sessão.", code="ALREADY_PAID")

        if self.payment_client is None:
            logger.error("AbacatePay API key not configured")
            raise InternalError("Configuração do servidor incompleta.")

        customer = self._customer_for(row)
        billing = await self.payment_client.create_billing(
            product=BillingProduct(
                external_id=row.plan_id,
                name=f"Plano {plan_name(row.plan_id)}",
                description=f"Assinatura Nexus Automações: plano {plan_name(row.plan_id)}",
                price_cents=amount_for_plan(row.plan_id),
            ),
            customer=customer,
            return_url=f"{self.settings.site_base}/pagamento/retorno?session_id={row.id}",
            completion_url=f"{self.settings.site_base}/criar-senha?session_id={row.id}",
        )

        if await self.store.attach_checkout(
            session, row.id, PROVIDER, billing.id, billing.url,
        ):
            if self.audit_service:
                await self.audit_service.record_event(
                    session, row.id, "checkout.created",
                    detail={"provider": PROVIDER, "bill_id": billing.id},
                )
            logger.info(
                "Checkout created",
                extra={"session_id": row.id, "bill_id": billing.id},
            )
            return billing.url

        # A concurrent request stored its checkout first; hand back that one.
        current = await self.store.get(session, row.id, refresh=True)
        stored = self._cached_url(current) if current else None
        logger.info(
            "Checkout race lost; discarding billing %s", billing.id,
            extra={"session_id": row.id},
        )
        if stored:
            return stored
        raise ConflictError("Pagamento já confirmado para esta sessão.", code="ALREADY_PAID")

    @staticmethod
    def _cached_url(row: PaymentSessionModel) -> Optional[str]:
        if row.provider_checkout_url and row.status not in (
            SessionStatus.PAID.value,
            SessionStatus.CANCELED.value,
        ):
            return row.provider_checkout_url
        return None

    @staticmethod
    def _customer_for(row: PaymentSessionModel) -> BillingCustomer:
        phone = normalize_phone(row.telefone)
        if phone is None:
            raise ValidationError("Telefone inválido. Informe DDD e número.", field="telefone")
        if not is_valid_tax_id(row.tax_id):
            raise ValidationError("CPF ou CNPJ inválido.", field="tax_id")
        return BillingCustomer(
            name=row.nome_proprietario,
            cellphone=phone,
            email=row.user_email,
            tax_id=only_digits(row.tax_id),
        )
