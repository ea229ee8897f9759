"""Audit chain API router."""

from fastapi import APIRouter, Depends, Query

from nexus_checkout.common.security import require_admin_key
from nexus_checkout.audit.schemas import AuditChainVerification, AuditEventResponse

router = APIRouter()


def _get_service():
    from nexus_checkout.deps import get_audit_service
    return get_audit_service()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.get("/admin/audit/{session_id}", response_model=list[AuditEventResponse])
async def get_audit_events(
    session_id: str,
    event_type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_admin_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        events = await svc.get_events(
            session, session_id, event_type=event_type,
            limit=limit, offset=offset,
        )
        return [AuditEventResponse.model_validate(e) for e in events]


@router.get("/admin/audit/{session_id}/verify", response_model=AuditChainVerification)
async def verify_audit_chain(session_id: str, _=Depends(require_admin_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.verify_chain(session, session_id)
        return AuditChainVerification(**result)
