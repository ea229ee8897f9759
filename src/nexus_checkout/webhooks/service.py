"""Apply canonical payment events to payment sessions."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.audit.service import AuditService
from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.exceptions import ConflictError
from nexus_checkout.notifications.email_delivery import EmailSender
from nexus_checkout.notifications.templates import ACCESS_SUBJECT, render_access_email
from nexus_checkout.sessions.models import PaymentSessionModel
from nexus_checkout.sessions.service import SessionStore
from nexus_checkout.sessions.state import is_paid
from nexus_checkout.webhooks.events import CanonicalEvent
from nexus_checkout.webhooks.schemas import WebhookAck

logger = logging.getLogger(__name__)


class WebhookProcessor:
    """Provider-independent webhook handling.

    Steps, for an event already authenticated and normalized:
      1. skip events whose (provider, event_id) was recorded before;
      2. resolve the session by bill id, then email, then tax id;
      3. insert the payment_events row (the unique constraint is the real
         duplicate guard when two deliveries race past step 1);
      4. stamp the event on the session row;
      5. active events move the session to paid_waiting_account; the
         access email goes out only when this call made that move;
      6. refused or canceled purchases move an unpaid session to canceled.
    """

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

    async def process(self, session: AsyncSession, event: CanonicalEvent) -> WebhookAck:
        log_extra = {"provider": event.provider, "event_id": event.event_id}

        if event.event_id and await self.store.event_seen(
            session, event.provider, event.event_id,
        ):
            logger.info("Duplicate webhook event acknowledged", extra=log_extra)
            return WebhookAck(duplicate=True)

        row, matched_by = await self.store.resolve(
            session,
            bill_id=event.hint.bill_id,
            email=event.hint.email,
            tax_id=event.hint.tax_id,
        )

        try:
            recorded = await self.store.record_event(
                session,
                provider=event.provider,
                event_id=event.event_id,
                event_type=event.event_type or event.status_pagamento,
                status_pagamento=event.status_pagamento,
                session_id=row.id if row else None,
                outcome="ignored" if row is None else "recorded",
                payload=event.payload,
            )
        except ConflictError:
            return WebhookAck(duplicate=True)

        if row is None:
            logger.info("Webhook event matched no session", extra=log_extra)
            return WebhookAck(ignored=True, reason="session_not_found")

        session_id = row.id
        previous_status = row.status
        await self.store.apply_event_audit(
            session,
            session_id,
            provider=event.provider,
            event_id=event.event_id,
            event_type=event.event_type,
            status_pagamento=event.status_pagamento,
            payload=event.payload,
            bill_id=event.hint.bill_id,
            plan_id=event.plan_id,
        )

        transitioned = False
        canceled = False
        if event.is_active:
            transitioned = await self.store.mark_paid_waiting_account(session, session_id)
            if not transitioned and not is_paid(previous_status):
                logger.error(
                    "Confirmed payment on a session that cannot accept it",
                    extra={**log_extra, "session_id": session_id, "status": previous_status},
                )
        elif event.is_closing:
            canceled = await self.store.mark_canceled(session, session_id)

        if canceled:
            recorded.outcome = "canceled"
            if self.audit_service:
                await self.audit_service.record_event(
                    session, session_id, "payment.canceled",
                    actor=event.provider,
                    detail={
                        "event_id": event.event_id,
                        "event_type": event.event_type,
                        "previous_status": previous_status,
                    },
                )
        if transitioned:
            recorded.outcome = "transitioned"
            if self.audit_service:
                await self.audit_service.record_event(
                    session, session_id, "payment.confirmed",
                    actor=event.provider,
                    detail={
                        "event_id": event.event_id,
                        "event_type": event.event_type,
                        "previous_status": previous_status,
                        "matched_by": matched_by,
                    },
                )
        await session.commit()

        logger.info(
            "Webhook event applied",
            extra={**log_extra, "session_id": session_id, "transitioned": transitioned},
        )
        if transitioned:
            await self._send_access_email(session, session_id)

        return WebhookAck(
            processed=True,
            status_updated=transitioned or canceled,
            event=event.event_type or event.status_pagamento,
        )

    async def _send_access_email(self, session: AsyncSession, session_id: str) -> None:
        """Best effort; the payment is already recorded."""
        if self.email_sender is None:
            logger.warning("Email not configured; skipping access email", extra={"session_id": session_id})
            return
        row: Optional[PaymentSessionModel] = await self.store.get(session, session_id, refresh=True)
        if row is None:
            return
        html = render_access_email(
            self.settings,
            to=row.user_email,
            owner_name=row.nome_proprietario,
            test_mode=self.email_sender.test_mode,
        )
        if not await self.email_sender.send(row.user_email, ACCESS_SUBJECT, html):
            logger.error("Access email failed after payment", extra={"session_id": session_id})
