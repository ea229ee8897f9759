"""Pydantic schemas for establishment admin views."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserRoleResponse(BaseModel):
    user_id: str
    role: str

    model_config = {"from_attributes": True}


class CommercialRecordResponse(BaseModel):
    user_id: str
    plano_atual: str
    status: str
    acesso_ate: Optional[datetime] = None
    trial_inicio: Optional[datetime] = None
    trial_fim: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EstablishmentResponse(BaseModel):
    id: str
    nome: str
    telefone: Optional[str] = None
    endereco: Optional[str] = None
    created_by_user_id: str
    created_at: datetime
    roles: list[UserRoleResponse] = []
    commercial_record: Optional[CommercialRecordResponse] = None
