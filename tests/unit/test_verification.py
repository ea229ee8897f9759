"""Tests for signup start and email token verification."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from nexus_checkout.audit.service import AuditService
from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.database import DatabaseManager
from nexus_checkout.common.exceptions import InternalError, NotFoundError
from nexus_checkout.common.models import utcnow
from nexus_checkout.sessions.models import PaymentSessionModel
from nexus_checkout.sessions.service import SessionStore
from nexus_checkout.verification.schemas import StartVerificationRequest
from nexus_checkout.verification.service import VerificationService
from nexus_checkout.webhooks.events import CanonicalEvent, EventKind, SessionHint
from nexus_checkout.webhooks.service import WebhookProcessor

from tests.conftest import SIGNUP_FORM, FakeEmailSender


def make_settings(**overrides) -> NexusSettings:
    defaults = {
        "db_url": "sqlite+aiosqlite://",
        "audit_hmac_key": "test-audit-key",
        "public_site_url": "https://nexus.test/",
    }
    defaults.update(overrides)
    return NexusSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def sender():
    return FakeEmailSender()


@pytest.fixture
def audit_svc():
    return AuditService(make_settings())


@pytest.fixture
def svc(sender, audit_svc):
    return VerificationService(make_settings(), SessionStore(), sender, audit_svc)


def _request(**overrides) -> StartVerificationRequest:
    return StartVerificationRequest(**{**SIGNUP_FORM, **overrides})


async def _count_sessions(db) -> int:
    async with db.get_session() as session:
        result = await session.execute(select(func.count()).select_from(PaymentSessionModel))
        return result.scalar_one()


class TestStart:
    async def test_creates_session_and_sends_link(self, db, svc, sender):
        async with db.get_session() as session:
            row = await svc.start(session, _request())
        assert row.status == "pending_verification"
        assert row.tax_id == "52998224725"
        assert row.amount_cents == 34700
        assert len(sender.sent) == 1
        message = sender.sent[0]
        assert message["to"] == "joana@example.com"
        assert "https://nexus.test/verificar-email?token=" in message["html"]
        assert "PRO + IA" in message["html"]

    async def test_raw_token_not_stored(self, db, svc, sender):
        async with db.get_session() as session:
            row = await svc.start(session, _request())
        assert row.verification_token != sender.last_token()

    async def test_audit_events(self, db, svc, audit_svc):
        async with db.get_session() as session:
            row = await svc.start(session, _request())
        async with db.get_session() as session:
            events = await audit_svc.get_events(session, row.id)
        assert [e.event_type for e in reversed(events)] == [
            "session.created", "verification.email_sent",
        ]

    async def test_no_sender_creates_nothing(self, db, audit_svc):
        svc = VerificationService(make_settings(), SessionStore(), None, audit_svc)
        with pytest.raises(InternalError):
            async with db.get_session() as session:
                await svc.start(session, _request())
        assert await _count_sessions(db) == 0

    async def test_failed_send_keeps_pending_row(self, db, svc, sender, audit_svc):
        sender.fail = True
        with pytest.raises(InternalError) as exc_info:
            async with db.get_session() as session:
                await svc.start(session, _request())
        assert exc_info.value.message == "Falha ao enviar o email de verificação."
        assert await _count_sessions(db) == 1
        async with db.get_session() as session:
            row = (await session.execute(select(PaymentSessionModel))).scalar_one()
            head = await audit_svc.get_chain_head(session, row.id)
        assert row.status == "pending_verification"
        assert head.event_type == "verification.email_failed"


class TestVerify:
    async def _start(self, db, svc, sender):
        async with db.get_session() as session:
            row = await svc.start(session, _request())
        return row, sender.last_token()

    async def test_verify_moves_to_pending_payment(self, db, svc, sender):
        row, token = await self._start(db, svc, sender)
        async with db.get_session() as session:
            session_id, already = await svc.verify(session, token)
        assert session_id == row.id
        assert already is False
        async with db.get_session() as session:
            current = await session.get(PaymentSessionModel, row.id)
        assert current.status == "pending_payment"
        assert current.email_verified_at is not None

    async def test_second_verify_is_idempotent(self, db, svc, sender):
        row, token = await self._start(db, svc, sender)
        async with db.get_session() as session:
            await svc.verify(session, token)
        async with db.get_session() as session:
            first_verified_at = (await session.get(PaymentSessionModel, row.id)).email_verified_at
        async with db.get_session() as session:
            session_id, already = await svc.verify(session, token)
        assert session_id == row.id
        assert already is True
        async with db.get_session() as session:
            current = await session.get(PaymentSessionModel, row.id, populate_existing=True)
        assert current.email_verified_at == first_verified_at

    async def test_verify_after_webhook_payment(self, db, svc, sender, audit_svc):
        row, token = await self._start(db, svc, sender)
        processor = WebhookProcessor(make_settings(), svc.store, sender, audit_svc)
        event = CanonicalEvent(
            provider="kiwify",
            event_type="compra_aprovada",
            kind=EventKind.PURCHASE_APPROVED,
            event_id="evt-early",
            hint=SessionHint(email="joana@example.com"),
        )
        async with db.get_session() as session:
            await processor.process(session, event)

        async with db.get_session() as session:
            session_id, already = await svc.verify(session, token)
        assert session_id == row.id
        assert already is False

        async with db.get_session() as session:
            current = await session.get(PaymentSessionModel, row.id)
            head = await audit_svc.get_chain_head(session, row.id)
        assert current.status == "paid_waiting_account"
        assert current.paid_at is not None
        assert current.email_verified_at is not None
        assert head.event_type == "verification.verified"
        assert head.detail == {"after_payment": True}

        async with db.get_session() as session:
            _, already = await svc.verify(session, token)
        assert already is True

    async def test_unknown_token(self, db, svc):
        with pytest.raises(NotFoundError) as exc_info:
            async with db.get_session() as session:
                await svc.verify(session, "never-issued")
        assert exc_info.value.message == "Token não encontrado ou expirado."

    async def test_expired_token(self, db, svc, sender, audit_svc):
        row, token = await self._start(db, svc, sender)
        async with db.get_session() as session:
            await session.execute(
                update(PaymentSessionModel)
                .where(PaymentSessionModel.id == row.id)
                .values(created_at=utcnow() - timedelta(hours=73))
            )
        with pytest.raises(NotFoundError):
            async with db.get_session() as session:
                await svc.verify(session, token)
        async with db.get_session() as session:
            current = await session.get(PaymentSessionModel, row.id)
            head = await audit_svc.get_chain_head(session, row.id)
        assert current.status == "expired"
        assert current.email_verified_at is None
        assert head.event_type == "verification.expired"

    async def test_ttl_zero_never_expires(self, db, sender, audit_svc):
        svc = VerificationService(
            make_settings(verification_token_ttl_hours=0), SessionStore(), sender, audit_svc,
        )
        row, token = await self._start(db, svc, sender)
        async with db.get_session() as session:
            await session.execute(
                update(PaymentSessionModel)
                .where(PaymentSessionModel.id == row.id)
                .values(created_at=utcnow() - timedelta(days=30))
            )
        async with db.get_session() as session:
            _, already = await svc.verify(session, token)
        assert already is False
