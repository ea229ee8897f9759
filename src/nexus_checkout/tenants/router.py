"""Establishment admin router — requires the admin key."""

from fastapi import APIRouter, Depends, HTTPException

from nexus_checkout.common.security import require_admin_key
from nexus_checkout.tenants.schemas import (
    CommercialRecordResponse,
    EstablishmentResponse,
    UserRoleResponse,
)

router = APIRouter()


def _get_service():
    from nexus_checkout.deps import get_establishment_service
    return get_establishment_service()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


@router.get("/admin/establishments/{establishment_id}", response_model=EstablishmentResponse)
async def get_establishment(establishment_id: str, _=Depends(require_admin_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        establishment = await svc.get_establishment(session, establishment_id)
        if establishment is None:
            raise HTTPException(status_code=404, detail="Establishment not found")
        roles = await svc.list_roles(session, establishment_id)
        record = await svc.get_commercial_record(session, establishment.created_by_user_id)
        return EstablishmentResponse(
            id=establishment.id,
            nome=establishment.nome,
            telefone=establishment.telefone,
            endereco=establishment.endereco,
            created_by_user_id=establishment.created_by_user_id,
            created_at=establishment.created_at,
            roles=[UserRoleResponse.model_validate(r) for r in roles],
            commercial_record=(
                CommercialRecordResponse.model_validate(record) if record else None
            ),
        )
