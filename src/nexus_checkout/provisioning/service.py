"""Account provisioning after a confirmed payment.

The identity account lives in another system, so the steps below are not
one transaction. Each step is safe to repeat, an audit event is written
after each, and a failure leaves ``provisioning.failed`` naming the step.
A session whose identity account exists but whose ``created_user_at`` is
still null shows up in ``SessionStore.list_orphaned_sessions``.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.audit.service import AuditService
from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from nexus_checkout.common.models import utcnow
from nexus_checkout.notifications.email_delivery import EmailSender
from nexus_checkout.notifications.templates import ACCESS_SUBJECT, render_access_email
from nexus_checkout.provisioning.identity_client import (
    IdentityClient,
    IdentityConflictError,
    IdentityError,
)
from nexus_checkout.sessions.models import PaymentSessionModel
from nexus_checkout.sessions.plans import DEFAULT_PLAN
from nexus_checkout.sessions.service import SessionStore
from nexus_checkout.sessions.state import is_paid
from nexus_checkout.tenants.service import ADMIN_ROLE, EstablishmentService

logger = logging.getLogger(__name__)

ACCOUNT_EXISTS = "Este email já possui conta. Por favor, faça login."


class AccountProvisioner:
    """Creates identity account, establishment, role and commercial record."""

    def __init__(
        self,
        settings: NexusSettings,
        store: SessionStore,
        establishments: EstablishmentService,
        identity_client: Optional[IdentityClient] = None,
        email_sender: Optional[EmailSender] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.settings = settings
        self.store = store
        self.establishments = establishments
        self.identity_client = identity_client
        self.email_sender = email_sender
        self.audit_service = audit_service

    async def provision(
        self,
        session: AsyncSession,
        session_id: str,
        password: str,
        confirm_password: str,
    ) -> str:
        row = await self.store.get(session, session_id)
        if row is None:
            raise NotFoundError("Sessão não encontrada.")
        if not is_paid(row.status):
            raise PreconditionError("Pagamento não confirmado ainda.")
        if row.created_user_at is not None:
            logger.info("Provisioning already done", extra={"session_id": session_id})
            raise ConflictError("Conta já foi criada para este pagamento.", code="ALREADY_PROVISIONED")
        if password != confirm_password:
            raise ValidationError("As senhas não conferem", field="confirm_password")
        if self.identity_client is None:
            logger.error("Identity provider not configured")
            raise InternalError("Configuração do servidor incompleta.")

        user_id = await self._ensure_identity_user(session, row, password)

        step = "establishment"
        try:
            establishment = await self.establishments.find_by_owner(session, user_id)
            if establishment is None:
                establishment = await self.establishments.create_establishment(
                    session,
                    nome=row.nome_estabelecimento,
                    telefone=row.telefone,
                    endereco=row.endereco,
                    created_by_user_id=user_id,
                )
            await self._audit(
                session, session_id, "provisioning.establishment_created",
                {"establishment_id": establishment.id},
            )

            step = "role"
            await self.establishments.grant_role(session, user_id, establishment.id, ADMIN_ROLE)
            await self._audit(
                session, session_id, "provisioning.role_granted",
                {"establishment_id": establishment.id, "role": ADMIN_ROLE},
            )

            step = "commercial_record"
            now = utcnow()
            await self.establishments.upsert_commercial_record(
                session,
                user_id,
                nome_estabelecimento=row.nome_estabelecimento,
                endereco=row.endereco,
                telefone=row.telefone,
                nome_proprietario=row.nome_proprietario,
                email=row.user_email,
                plano_atual=row.plan_id or DEFAULT_PLAN,
                status="active",
                acesso_ate=now + timedelta(days=self.settings.access_window_days),
            )
            await self._audit(session, session_id, "provisioning.commercial_record_upserted")

            step = "session"
            marked = await self.store.mark_account_created(
                session, session_id, establishment.id, now,
            )
        except SQLAlchemyError:
            logger.exception(
                "Provisioning step failed",
                extra={"session_id": session_id, "step": step, "identity_user_id": user_id},
            )
            await session.rollback()
            await self._audit(session, session_id, "provisioning.failed", {"step": step})
            await session.commit()
            raise InternalError("Conta criada, mas erro ao configurar estabelecimento. Contate suporte.")

        if not marked:
            await session.rollback()
            logger.info("Lost provisioning race", extra={"session_id": session_id})
            raise ConflictError("Conta já foi criada para este pagamento.", code="ALREADY_PROVISIONED")

        await self._audit(
            session, session_id, "provisioning.completed",
            {"identity_user_id": user_id, "establishment_id": establishment.id},
        )
        await session.commit()
        logger.info("Account provisioned", extra={"session_id": session_id, "identity_user_id": user_id})

        await self._send_access_email(row)
        return "Conta criada com sucesso!"

    async def _ensure_identity_user(
        self, session: AsyncSession, row: PaymentSessionModel, password: str,
    ) -> str:
        """Step 1. A previous attempt's identity account is reused, not recreated.

        The reused account gets the password from this attempt, since that
        is the one the user will log in with.
        """
        if row.identity_user_id:
            logger.info(
                "Resuming provisioning with existing identity account",
                extra={"session_id": row.id, "identity_user_id": row.identity_user_id},
            )
            try:
                await self.identity_client.update_user(row.identity_user_id, password=password)
            except IdentityError as exc:
                logger.error(
                    "Identity update_user failed: %s (HTTP %s) %s", exc, exc.status_code, exc.body,
                    extra={"session_id": row.id, "identity_user_id": row.identity_user_id},
                )
                await self._audit(session, row.id, "provisioning.failed", {"step": "identity"})
                await session.commit()
                raise InternalError("Erro ao criar usuário.")
            await self._audit(
                session, row.id, "provisioning.identity_resumed",
                {"identity_user_id": row.identity_user_id},
            )
            await session.commit()
            return row.identity_user_id

        try:
            user_id = await self.identity_client.create_user(
                row.user_email,
                password,
                email_confirm=True,
                user_metadata={"nome": row.nome_proprietario},
            )
        except IdentityConflictError:
            logger.info("Identity account already exists", extra={"session_id": row.id})
            raise ConflictError(ACCOUNT_EXISTS, code="ACCOUNT_EXISTS")
        except IdentityError as exc:
            logger.error(
                "Identity create_user failed: %s (HTTP %s) %s", exc, exc.status_code, exc.body,
                extra={"session_id": row.id},
            )
            await self._audit(session, row.id, "provisioning.failed", {"step": "identity"})
            await session.commit()
            raise InternalError("Erro ao criar usuário.")

        await self.store.set_identity_user(session, row.id, user_id)
        await self._audit(
            session, row.id, "provisioning.identity_created", {"identity_user_id": user_id},
        )
        await session.commit()
        return user_id

    async def _audit(self, session, session_id, event_type, detail=None) -> None:
        if self.audit_service:
            await self.audit_service.record_event(session, session_id, event_type, detail=detail)

    async def _send_access_email(self, row: PaymentSessionModel) -> None:
        if self.email_sender is None:
            logger.warning("Email not configured; skipping access email", extra={"session_id": row.id})
            return
        try:
            html = render_access_email(
                self.settings,
                to=row.user_email,
                owner_name=row.nome_proprietario,
                test_mode=self.email_sender.test_mode,
            )
            sent = await self.email_sender.send(row.user_email, ACCESS_SUBJECT, html)
        except Exception:
            logger.exception("Access email failed", extra={"session_id": row.id})
            return
        if not sent:
            logger.error("Access email not delivered", extra={"session_id": row.id})
