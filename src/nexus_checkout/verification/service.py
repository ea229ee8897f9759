"""Email verification: issue a session + token, then consume the token."""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.audit.service import AuditService
from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.documents import only_digits
from nexus_checkout.common.exceptions import InternalError, NotFoundError
from nexus_checkout.common.models import as_utc, utcnow
from nexus_checkout.notifications.email_delivery import EmailSender
from nexus_checkout.notifications.templates import (
    VERIFICATION_SUBJECT,
    render_verification_email,
)
from nexus_checkout.sessions.models import PaymentSessionModel
from nexus_checkout.sessions.service import SessionStore
from nexus_checkout.verification.schemas import StartVerificationRequest

logger = logging.getLogger(__name__)

TOKEN_NOT_FOUND = "Token não encontrado ou expirado."


class VerificationService:
    """Owns the pending_verification → pending_payment transition."""

    def __init__(
        self,
        settings: NexusSettings,
        store: SessionStore,
        email_sender: Optional[EmailSender] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.settings = settings
        self.store = store
        self.email_sender = email_sender
        self.audit_service = audit_service

    async def start(
        self, session: AsyncSession, request: StartVerificationRequest,
    ) -> PaymentSessionModel:
        """Create the session row, commit it, then email the verification link.

        The row is committed before the email goes out, so a failed send
        leaves a pending_verification session behind and nothing else.
        """
        if self.email_sender is None:
            logger.error("Email provider not configured; refusing to start verification")
            raise InternalError("Configuração do servidor incompleta.")

        raw_token = secrets.token_urlsafe(32)
        try:
            row = await self.store.create_session(
                session,
                user_email=request.email,
                nome_estabelecimento=request.nome_estabelecimento,
                endereco=request.endereco,
                telefone=request.telefone,
                nome_proprietario=request.nome_proprietario,
                tax_id=only_digits(request.cpf),
                plan_id=request.plan_id,
                raw_token=raw_token,
            )
            if self.audit_service:
                await self.audit_service.record_event(
                    session, row.id, "session.created",
                    detail={"plan_id": row.plan_id, "amount_cents": row.amount_cents},
                )
            await session.commit()
        except SQLAlchemyError:
            logger.exception("Payment session insert failed")
            await session.rollback()
            raise InternalError("Erro ao iniciar o cadastro. Tente novamente.")

        html = render_verification_email(
            self.settings,
            to=request.email,
            owner_name=request.nome_proprietario,
            plan_id=request.plan_id,
            raw_token=raw_token,
            test_mode=self.email_sender.test_mode,
        )
        sent = await self.email_sender.send(request.email, VERIFICATION_SUBJECT, html)
        if self.audit_service:
            await self.audit_service.record_event(
                session, row.id,
                "verification.email_sent" if sent else "verification.email_failed",
            )
            await session.commit()
        if not sent:
            logger.error(
                "Verification email failed; session left pending_verification",
                extra={"session_id": row.id},
            )
            raise InternalError("Falha ao enviar o email de verificação.")

        logger.info("Verification started", extra={"session_id": row.id, "plan_id": row.plan_id})
        return row

    async def verify(self, session: AsyncSession, raw_token: str) -> tuple[str, bool]:
        """Consume a token. Returns ``(session_id, already_verified)``.

        Repeated calls with a token that was already consumed succeed
        without writing anything.
        """
        row = await self.store.get_by_token(session, raw_token)
        if row is None:
            raise NotFoundError(TOKEN_NOT_FOUND)

        if row.email_verified_at is not None:
            return row.id, True

        if self._token_expired(row):
            if await self.store.mark_expired(session, row.id):
                if self.audit_service:
                    await self.audit_service.record_event(session, row.id, "verification.expired")
                await session.commit()
                logger.info("Verification token expired", extra={"session_id": row.id})
            raise NotFoundError(TOKEN_NOT_FOUND)

        if await self.store.mark_email_verified(session, row.id):
            if self.audit_service:
                await self.audit_service.record_event(session, row.id, "verification.verified")
            return row.id, False

        # A webhook matched by email can confirm payment before the link is clicked.
        if await self.store.mark_email_verified_after_payment(session, row.id):
            if self.audit_service:
                await self.audit_service.record_event(
                    session, row.id, "verification.verified", detail={"after_payment": True},
                )
            logger.info("Email verified after payment", extra={"session_id": row.id})
            return row.id, False

        # Lost the race, or the session left pending_verification some other way.
        current = await self.store.get(session, row.id, refresh=True)
        if current is not None and current.email_verified_at is not None:
            return current.id, True
        raise NotFoundError(TOKEN_NOT_FOUND)

    def _token_expired(self, row: PaymentSessionModel) -> bool:
        ttl_hours = self.settings.verification_token_ttl_hours
        if ttl_hours <= 0:
            return False
        return as_utc(row.created_at) + timedelta(hours=ttl_hours) < utcnow()
