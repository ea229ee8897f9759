"""Signup email verification endpoints."""

from fastapi import APIRouter

from nexus_checkout.verification.schemas import (
    StartVerificationRequest,
    StartVerificationResponse,
    VerifyTokenRequest,
    VerifyTokenResponse,
)

router = APIRouter()


def _get_service():
    from nexus_checkout.deps import get_verification_service
    return get_verification_service()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.post("/start-email-verification", response_model=StartVerificationResponse)
async def start_email_verification(body: StartVerificationRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.start(session, body)
    return StartVerificationResponse()


@router.post("/verify-email-token", response_model=VerifyTokenResponse)
async def verify_email_token(body: VerifyTokenRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        session_id, already_verified = await svc.verify(session, body.token)
    return VerifyTokenResponse(
        session_id=session_id,
        message="Email já verificado." if already_verified else None,
    )
