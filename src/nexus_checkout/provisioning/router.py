"""Account creation endpoint, called from the set-password page."""

from fastapi import APIRouter

from nexus_checkout.provisioning.schemas import CreateAccountRequest, CreateAccountResponse

router = APIRouter()


def _get_service():
    from nexus_checkout.deps import get_account_provisioner
    return get_account_provisioner()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.post("/create-account-after-payment", response_model=CreateAccountResponse)
async def create_account_after_payment(body: CreateAccountRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        message = await svc.provision(
            session, body.session_id, body.password, body.confirm_password,
        )
    return CreateAccountResponse(message=message)
