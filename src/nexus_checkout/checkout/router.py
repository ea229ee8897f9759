"""Checkout endpoint."""

from fastapi import APIRouter

from nexus_checkout.checkout.schemas import CreateCheckoutRequest, CreateCheckoutResponse

router = APIRouter()


def _get_service():
    from nexus_checkout.deps import get_checkout_service
    return get_checkout_service()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.post("/create-checkout", response_model=CreateCheckoutResponse)
async def create_checkout(body: CreateCheckoutRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        url = await svc.create_checkout(session, body.session_id)
    return CreateCheckoutResponse(checkout_url=url, session_id=body.session_id)
