"""Initial schema: payment sessions, events, audit chain, tenants, trial locks.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "payment_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("user_email", sa.String(254), nullable=False),
        sa.Column("nome_estabelecimento", sa.String(200), nullable=False),
        sa.Column("endereco", sa.String(500), nullable=False),
        sa.Column("telefone", sa.String(50), nullable=False),
        sa.Column("nome_proprietario", sa.String(200), nullable=False),
        sa.Column("tax_id", sa.String(20), nullable=False),
        sa.Column("plan_id", sa.String(32), nullable=False),
        sa.Column("amount_cents", sa.Integer, nullable=False),
        sa.Column("verification_token", sa.String(64), nullable=False),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provider", sa.String(32), nullable=True),
        sa.Column("provider_bill_id", sa.String(255), nullable=True),
        sa.Column("provider_checkout_url", sa.String(2048), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("identity_user_id", sa.String(64), nullable=True),
        sa.Column("establishment_id", sa.String(36), nullable=True),
        sa.Column("created_user_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("event_id", sa.String(255), nullable=True),
        sa.Column("ultimo_evento", sa.String(64), nullable=True),
        sa.Column("status_pagamento", sa.String(64), nullable=True),
        sa.Column("data_ultimo_evento", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payload_raw", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payment_sessions_status", "payment_sessions", ["status"])
    op.create_index("ix_payment_sessions_user_email", "payment_sessions", ["user_email"])
    op.create_index("ix_payment_sessions_tax_id", "payment_sessions", ["tax_id"])
    op.create_index(
        "ix_payment_sessions_verification_token", "payment_sessions",
        ["verification_token"], unique=True,
    )
    op.create_index("ix_payment_sessions_provider_bill_id", "payment_sessions", ["provider_bill_id"])
    op.create_index("ix_payment_sessions_identity_user_id", "payment_sessions", ["identity_user_id"])

    op.create_table(
        "payment_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("status_pagamento", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(36), sa.ForeignKey("payment_sessions.id"), nullable=True),
        sa.Column("outcome", sa.String(32), nullable=False),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("payload", sa.JSON, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("provider", "event_id", name="uq_payment_event_provider_event"),
    )
    op.create_index("ix_payment_events_event_id", "payment_events", ["event_id"])
    op.create_index("ix_payment_events_session_id", "payment_events", ["session_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("session_id", sa.String(36), sa.ForeignKey("payment_sessions.id"), nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("actor", sa.String(255), nullable=False),
        sa.Column("detail", sa.JSON, nullable=True),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.Column("event_hash", sa.String(64), nullable=False),
        sa.Column("signature", sa.String(64), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "sequence", name="uq_audit_session_sequence"),
    )
    op.create_index("ix_audit_events_session_id", "audit_events", ["session_id"])
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])

    op.create_table(
        "establishments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("nome", sa.String(200), nullable=False),
        sa.Column("telefone", sa.String(50), nullable=True),
        sa.Column("endereco", sa.String(500), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_establishments_created_by_user_id", "establishments", ["created_by_user_id"],
    )

    op.create_table(
        "user_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column(
            "establishment_id", sa.String(36), sa.ForeignKey("establishments.id"), nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "establishment_id", "role", name="uq_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "commercial_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("nome_estabelecimento", sa.String(200), nullable=True),
        sa.Column("endereco", sa.String(500), nullable=True),
        sa.Column("telefone", sa.String(50), nullable=True),
        sa.Column("nome_proprietario", sa.String(200), nullable=True),
        sa.Column("email", sa.String(254), nullable=True),
        sa.Column("plano_atual", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("acesso_ate", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_inicio", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_fim", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_commercial_records_user_id", "commercial_records", ["user_id"], unique=True,
    )

    op.create_table(
        "trial_locks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("lock_type", sa.String(32), nullable=False),
        sa.Column("lock_hash", sa.String(64), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("lock_type", "lock_hash", name="uq_trial_lock"),
    )
    op.create_index("ix_trial_locks_lock_hash", "trial_locks", ["lock_hash"])


def downgrade() -> None:
    op.drop_table("trial_locks")
    op.drop_table("commercial_records")
    op.drop_table("user_roles")
    op.drop_table("establishments")
    op.drop_table("audit_events")
    op.drop_table("payment_events")
    op.drop_table("payment_sessions")
