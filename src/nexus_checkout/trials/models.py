"""SQLAlchemy model for anti-fraud trial locks."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nexus_checkout.common.models import Base, TimestampMixin, generate_uuid


class TrialLockModel(Base, TimestampMixin):
    """SHA-256 of one normalized identity attribute of a past trial.

    Rows are never deleted by the service.
    """

    __tablename__ = "trial_locks"
    __table_args__ = (
        UniqueConstraint("lock_type", "lock_hash", name="uq_trial_lock"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    lock_type: Mapped[str] = mapped_column(String(32), nullable=False)
    lock_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
