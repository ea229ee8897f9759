"""Audit service — record, verify, and query a session's event chain."""

import hashlib
import hmac as hmac_mod
import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.common.config import NexusSettings
from nexus_checkout.audit.models import AuditEventModel


class AuditService:
    """Append-only, hash-chained event log per payment session."""

    def __init__(self, settings: NexusSettings):
        self.settings = settings

    # ── Write ──

    async def record_event(
        self,
        session: AsyncSession,
        session_id: str,
        event_type: str,
        actor: str = "system",
        detail: dict[str, Any] | None = None,
    ) -> AuditEventModel:
        """Append a new event to the session's audit chain."""
        detail = detail or {}

        head = await self.get_chain_head(session, session_id)
        prev_hash = head.event_hash if head else None
        sequence = head.sequence + 1 if head else 1

        event_hash = self._compute_event_hash(
            event_type, actor, detail, prev_hash,
        )

        event = AuditEventModel(
            session_id=session_id,
            sequence=sequence,
            event_type=event_type,
            actor=actor,
            detail=detail,
            prev_hash=prev_hash,
            event_hash=event_hash,
            signature=self._sign(event_hash),
        )
        session.add(event)
        await session.flush()
        return event

    # ── Read ──

    async def get_chain_head(
        self, session: AsyncSession, session_id: str,
    ) -> AuditEventModel | None:
        """Return the most recent event for a session."""
        result = await session.execute(
            select(AuditEventModel)
            .where(AuditEventModel.session_id == session_id)
            .order_by(AuditEventModel.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_events(
        self,
        session: AsyncSession,
        session_id: str,
        event_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditEventModel]:
        """Paginated event list, newest first."""
        query = select(AuditEventModel).where(AuditEventModel.session_id == session_id)
        if event_type:
            query = query.where(AuditEventModel.event_type == event_type)
        query = (
            query.order_by(AuditEventModel.sequence.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    # ── Verify ──

    async def verify_chain(
        self, session: AsyncSession, session_id: str,
    ) -> dict[str, Any]:
        """Walk the chain oldest→newest, verify hashes and signatures."""
        result = await session.execute(
            select(AuditEventModel)
            .where(AuditEventModel.session_id == session_id)
            .order_by(AuditEventModel.sequence.asc())
        )
        events = list(result.scalars().all())

        prev_hash = None
        for index, event in enumerate(events):
            expected_hash = self._compute_event_hash(
                event.event_type, event.actor, event.detail, event.prev_hash,
            )
            if (
                event.prev_hash != prev_hash
                or event.event_hash != expected_hash
                or not hmac_mod.compare_digest(self._sign(event.event_hash), event.signature)
            ):
                return {"valid": False, "events_checked": index, "break_at": event.id}
            prev_hash = event.event_hash

        return {"valid": True, "events_checked": len(events), "break_at": None}

    # ── Internal helpers ──

    @staticmethod
    def _compute_event_hash(
        event_type: str,
        actor: str,
        detail: dict[str, Any],
        prev_hash: str | None,
    ) -> str:
        """SHA-256 of canonical JSON of the event fields."""
        canonical = json.dumps(
            {
                "event_type": event_type,
                "actor": actor,
                "detail": detail,
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, event_hash: str) -> str:
        """HMAC-SHA256 of event_hash with the audit key."""
        return hmac_mod.new(
            self.settings.audit_hmac_key.encode(),
            event_hash.encode(),
            hashlib.sha256,
        ).hexdigest()
