"""SQLAlchemy models for payment sessions and received payment events."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nexus_checkout.common.models import Base, TimestampMixin, generate_uuid
from nexus_checkout.sessions.state import SessionStatus


class PaymentSessionModel(Base, TimestampMixin):
    __tablename__ = "payment_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SessionStatus.PENDING_VERIFICATION.value, index=True
    )

    # Signup facts
    user_email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    nome_estabelecimento: Mapped[str] = mapped_column(String(200), nullable=False)
    endereco: Mapped[str] = mapped_column(String(500), nullable=False)
    telefone: Mapped[str] = mapped_column(String(50), nullable=False)
    nome_proprietario: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    plan_id: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # SHA-256 of the emailed token; the raw token is never stored.
    verification_token: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # External payment object
    provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    provider_bill_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    provider_checkout_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Provisioning
    identity_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    establishment_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_user_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Latest webhook event applied to this session
    event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ultimo_evento: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status_pagamento: Mapped[str | None] = mapped_column(String(64), nullable=True)
    data_ultimo_evento: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payload_raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class PaymentEventModel(Base, TimestampMixin):
    """One row per webhook delivery that carried an event id.

    The unique constraint is what makes duplicate deliveries harmless
    when two of them race past the application-level check.
    """

    __tablename__ = "payment_events"
    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_payment_event_provider_event"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    event_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    status_pagamento: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    session_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("payment_sessions.id"), nullable=True, index=True
    )
    outcome: Mapped[str] = mapped_column(String(32), nullable=False, default="received")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
