"""Session status polling and administrative session views."""

from fastapi import APIRouter, Depends, HTTPException, Query

from nexus_checkout.common.exceptions import NotFoundError
from nexus_checkout.common.security import require_admin_key
from nexus_checkout.sessions.schemas import (
    PaymentEventResponse,
    PaymentStatusRequest,
    PaymentStatusResponse,
    SessionDetail,
    SessionSummary,
)

router = APIRouter()


def _get_store():
    from nexus_checkout.deps import get_session_store
    return get_session_store()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.post("/check-payment-status", response_model=PaymentStatusResponse)
async def check_payment_status(body: PaymentStatusRequest):
    """Read-only; the frontend polls this until the session is paid."""
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        row = await store.get(session, body.session_id)
        if row is None:
            raise NotFoundError("Sessão não encontrada")
        return PaymentStatusResponse(
            status=row.status,
            paid_at=row.paid_at,
            plan_id=row.plan_id,
            created_user_at=row.created_user_at,
            user_email=row.user_email,
        )


@router.get("/admin/sessions/orphaned", response_model=list[SessionSummary])
async def list_orphaned_sessions(
    limit: int = Query(100, ge=1, le=500),
    _=Depends(require_admin_key),
):
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        rows = await store.list_orphaned_sessions(session, limit=limit)
        return [SessionSummary.model_validate(r) for r in rows]


@router.get("/admin/sessions/{session_id}", response_model=SessionDetail)
async def get_session_detail(session_id: str, _=Depends(require_admin_key)):
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        row = await store.get(session, session_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Session not found")
        events = await store.list_events(session, session_id)
        summary = SessionSummary.model_validate(row)
        return SessionDetail(
            **summary.model_dump(),
            events=[PaymentEventResponse.model_validate(e) for e in events],
        )
