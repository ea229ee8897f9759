"""Legacy free-trial signup endpoint."""

from fastapi import APIRouter, Request

from nexus_checkout.trials.schemas import TrialSignupRequest, TrialSignupResponse
from nexus_checkout.trials.service import client_ip

router = APIRouter()


def _get_service():
    from nexus_checkout.deps import get_trial_signup_service
    return get_trial_signup_service()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.post("/public-signup-trial", response_model=TrialSignupResponse)
async def public_signup_trial(body: TrialSignupRequest, request: Request):
    svc = _get_service()
    db = _get_db()
    ip = client_ip(request.headers.get("x-forwarded-for"))
    async with db.get_session() as session:
        user_id, establishment_id = await svc.signup(session, body, ip)
    return TrialSignupResponse(user_id=user_id, salao_id=establishment_id)
