"""SQLAlchemy models for establishments and their access records."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nexus_checkout.common.models import Base, TimestampMixin, generate_uuid


class EstablishmentModel(Base, TimestampMixin):
    """The workspace a customer manages after signup."""

    __tablename__ = "establishments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    nome: Mapped[str] = mapped_column(String(200), nullable=False)
    telefone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    endereco: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)


class UserRoleModel(Base, TimestampMixin):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "establishment_id", "role", name="uq_user_role"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    establishment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("establishments.id"), nullable=False
    )


class CommercialRecordModel(Base, TimestampMixin):
    """Plan and access window per user; one row per user."""

    __tablename__ = "commercial_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    nome_estabelecimento: Mapped[str | None] = mapped_column(String(200), nullable=True)
    endereco: Mapped[str | None] = mapped_column(String(500), nullable=True)
    telefone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    nome_proprietario: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    plano_atual: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)  # active | trial
    acesso_ate: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_inicio: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_fim: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
