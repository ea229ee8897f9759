"""Session store — row-level reads and conditional writes on payment sessions."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.common.exceptions import ConflictError
from nexus_checkout.common.models import utcnow
from nexus_checkout.common.security import sha256_hex
from nexus_checkout.sessions.models import PaymentEventModel, PaymentSessionModel
from nexus_checkout.sessions.plans import amount_for_plan
from nexus_checkout.sessions.state import PAID_STATUSES, SessionStatus, sources_for

logger = logging.getLogger(__name__)


def hash_token(raw_token: str) -> str:
    """SHA-256 of a raw verification token for storage and lookup."""
    return sha256_hex(raw_token)


class SessionStore:
    """Every lifecycle transition goes through a single guarded UPDATE.

    Methods that change ``status`` return ``True`` only when this call's
    UPDATE matched the row; callers treat ``False`` as "someone else got
    there first" rather than re-checking and writing again.
    """

    # ── Create / read ──

    async def create_session(
        self,
        session: AsyncSession,
        *,
        user_email: str,
        nome_estabelecimento: str,
        endereco: str,
        telefone: str,
        nome_proprietario: str,
        tax_id: str,
        plan_id: str,
        raw_token: str,
    ) -> PaymentSessionModel:
        row = PaymentSessionModel(
            user_email=user_email,
            nome_estabelecimento=nome_estabelecimento,
            endereco=endereco,
            telefone=telefone,
            nome_proprietario=nome_proprietario,
            tax_id=tax_id,
            plan_id=plan_id,
            amount_cents=amount_for_plan(plan_id),
            status=SessionStatus.PENDING_VERIFICATION.value,
            verification_token=hash_token(raw_token),
        )
        session.add(row)
        await session.flush()
        return row

    async def get(
        self, session: AsyncSession, session_id: str, refresh: bool = False,
    ) -> Optional[PaymentSessionModel]:
        return await session.get(
            PaymentSessionModel, session_id, populate_existing=refresh,
        )

    async def get_by_token(
        self, session: AsyncSession, raw_token: str,
    ) -> Optional[PaymentSessionModel]:
        result = await session.execute(
            select(PaymentSessionModel).where(
                PaymentSessionModel.verification_token == hash_token(raw_token)
            )
        )
        return result.scalar_one_or_none()

    async def _latest(self, session: AsyncSession, *criteria) -> Optional[PaymentSessionModel]:
        result = await session.execute(
            select(PaymentSessionModel)
            .where(*criteria)
            .order_by(PaymentSessionModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve(
        self,
        session: AsyncSession,
        bill_id: str | None = None,
        email: str | None = None,
        tax_id: str | None = None,
    ) -> tuple[Optional[PaymentSessionModel], str | None]:
        """Find the session a payment event refers to.

        Tries the provider billing id, then a case-insensitive email, then
        the digits-only tax id; the most recent session wins each lookup.
        Returns ``(session_or_None, matched_by)``.
        """
        if bill_id:
            found = await self._latest(
                session, PaymentSessionModel.provider_bill_id == bill_id
            )
            if found:
                return found, "bill_id"
        if email:
            found = await self._latest(
                session,
                func.lower(PaymentSessionModel.user_email) == email.strip().lower(),
            )
            if found:
                return found, "email"
        if tax_id:
            found = await self._latest(session, PaymentSessionModel.tax_id == tax_id)
            if found:
                return found, "tax_id"
        return None, None

    # ── Guarded transitions ──

    async def _guarded_update(self, session: AsyncSession, session_id: str, *guards, **values) -> bool:
        result = await session.execute(
            update(PaymentSessionModel)
            .where(PaymentSessionModel.id == session_id, *guards)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_email_verified(
        self, session: AsyncSession, session_id: str, now: datetime | None = None,
    ) -> bool:
        """Set email_verified_at once and move to pending_payment."""
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.email_verified_at.is_(None),
            PaymentSessionModel.status.in_(sources_for(SessionStatus.PENDING_PAYMENT)),
            email_verified_at=now or utcnow(),
            status=SessionStatus.PENDING_PAYMENT.value,
        )

    async def mark_email_verified_after_payment(
        self, session: AsyncSession, session_id: str, now: datetime | None = None,
    ) -> bool:
        """Late verification click on a session a payment already moved on; status stays."""
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.email_verified_at.is_(None),
            PaymentSessionModel.status.in_([s.value for s in PAID_STATUSES]),
            email_verified_at=now or utcnow(),
        )

    async def mark_canceled(self, session: AsyncSession, session_id: str) -> bool:
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.status.in_(sources_for(SessionStatus.CANCELED)),
            status=SessionStatus.CANCELED.value,
        )

    async def mark_expired(self, session: AsyncSession, session_id: str) -> bool:
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.email_verified_at.is_(None),
            PaymentSessionModel.status.in_(sources_for(SessionStatus.EXPIRED)),
            status=SessionStatus.EXPIRED.value,
        )

    async def attach_checkout(
        self,
        session: AsyncSession,
        session_id: str,
        provider: str,
        bill_id: str,
        checkout_url: str,
    ) -> bool:
        """Persist a new checkout unless a live one was stored meanwhile."""
        return await self._guarded_update(
            session,
            session_id,
            or_(
                PaymentSessionModel.provider_checkout_url.is_(None),
                PaymentSessionModel.status == SessionStatus.CANCELED.value,
            ),
            provider=provider,
            provider_bill_id=bill_id,
            provider_checkout_url=checkout_url,
        )

    async def mark_paid_waiting_account(
        self, session: AsyncSession, session_id: str, now: datetime | None = None,
    ) -> bool:
        """First confirmed payment: paid_at is set here and never again."""
        row = await self.get(session, session_id)
        paid_at = (row.paid_at if row and row.paid_at else None) or now or utcnow()
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.status.in_(sources_for(SessionStatus.PAID_WAITING_ACCOUNT)),
            status=SessionStatus.PAID_WAITING_ACCOUNT.value,
            paid_at=paid_at,
        )

    async def set_identity_user(
        self, session: AsyncSession, session_id: str, user_id: str,
    ) -> bool:
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.created_user_at.is_(None),
            identity_user_id=user_id,
        )

    async def mark_account_created(
        self,
        session: AsyncSession,
        session_id: str,
        establishment_id: str,
        now: datetime | None = None,
    ) -> bool:
        """Compare-and-set on created_user_at; the provisioning idempotency guard."""
        return await self._guarded_update(
            session,
            session_id,
            PaymentSessionModel.created_user_at.is_(None),
            PaymentSessionModel.status.in_(
                [SessionStatus.PAID_WAITING_ACCOUNT.value, SessionStatus.PAID.value]
            ),
            created_user_at=now or utcnow(),
            establishment_id=establishment_id,
            status=SessionStatus.PAID.value,
        )

    async def apply_event_audit(
        self,
        session: AsyncSession,
        session_id: str,
        *,
        provider: str,
        event_id: str | None,
        event_type: str,
        status_pagamento: str,
        payload: dict[str, Any],
        bill_id: str | None = None,
        plan_id: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Record the latest event on the session row, whatever its effect."""
        values: dict[str, Any] = {
            "provider": provider,
            "event_id": event_id,
            "ultimo_evento": event_type or None,
            "status_pagamento": status_pagamento,
            "data_ultimo_evento": now or utcnow(),
            "payload_raw": payload,
        }
        if bill_id:
            values["provider_bill_id"] = bill_id
        if plan_id:
            values["plan_id"] = plan_id
            values["amount_cents"] = amount_for_plan(plan_id)
        await self._guarded_update(session, session_id, **values)

    # ── Webhook event log ──

    async def event_seen(
        self, session: AsyncSession, provider: str, event_id: str,
    ) -> bool:
        result = await session.execute(
            select(PaymentEventModel.id).where(
                PaymentEventModel.provider == provider,
                PaymentEventModel.event_id == event_id,
            )
        )
        return result.first() is not None

    async def record_event(
        self,
        session: AsyncSession,
        *,
        provider: str,
        event_id: str | None,
        event_type: str,
        status_pagamento: str,
        session_id: str | None,
        outcome: str,
        payload: dict[str, Any],
    ) -> PaymentEventModel:
        """Insert the event row; a duplicate (provider, event_id) raises ConflictError.

        Must be the first write of the surrounding transaction: on conflict
        the transaction is rolled back so the caller can acknowledge cleanly.
        """
        event = PaymentEventModel(
            provider=provider,
            event_id=event_id,
            event_type=event_type,
            status_pagamento=status_pagamento,
            session_id=session_id,
            outcome=outcome,
            payload=payload,
        )
        session.add(event)
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            logger.info("Duplicate %s event %s rejected by constraint", provider, event_id)
            raise ConflictError("Evento já processado.", code="DUPLICATE_EVENT")
        return event

    async def list_events(
        self, session: AsyncSession, session_id: str,
    ) -> list[PaymentEventModel]:
        result = await session.execute(
            select(PaymentEventModel)
            .where(PaymentEventModel.session_id == session_id)
            .order_by(PaymentEventModel.created_at.asc())
        )
        return list(result.scalars().all())

    # ── Reconciliation ──

    async def list_orphaned_sessions(
        self, session: AsyncSession, limit: int = 100,
    ) -> list[PaymentSessionModel]:
        """Paid sessions whose identity account exists but provisioning never finished."""
        result = await session.execute(
            select(PaymentSessionModel)
            .where(
                PaymentSessionModel.identity_user_id.is_not(None),
                PaymentSessionModel.created_user_at.is_(None),
            )
            .order_by(PaymentSessionModel.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
