"""Establishment, role grant and commercial record writes."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.tenants.models import (
    CommercialRecordModel,
    EstablishmentModel,
    UserRoleModel,
)

DEFAULT_ESTABLISHMENT_NAME = "Meu Estabelecimento"
ADMIN_ROLE = "admin"


class EstablishmentService:
    """Each write is safe to repeat except ``create_establishment``."""

    async def create_establishment(
        self,
        session: AsyncSession,
        *,
        nome: str | None,
        telefone: str | None,
        endereco: str | None,
        created_by_user_id: str,
    ) -> EstablishmentModel:
        establishment = EstablishmentModel(
            nome=(nome or "").strip() or DEFAULT_ESTABLISHMENT_NAME,
            telefone=telefone,
            endereco=endereco,
            created_by_user_id=created_by_user_id,
        )
        session.add(establishment)
        await session.flush()
        return establishment

    async def get_establishment(
        self, session: AsyncSession, establishment_id: str,
    ) -> Optional[EstablishmentModel]:
        return await session.get(EstablishmentModel, establishment_id)

    async def find_by_owner(
        self, session: AsyncSession, user_id: str,
    ) -> Optional[EstablishmentModel]:
        result = await session.execute(
            select(EstablishmentModel)
            .where(EstablishmentModel.created_by_user_id == user_id)
            .order_by(EstablishmentModel.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def grant_role(
        self,
        session: AsyncSession,
        user_id: str,
        establishment_id: str,
        role: str = ADMIN_ROLE,
    ) -> UserRoleModel:
        """Upsert on (user_id, establishment_id, role)."""
        result = await session.execute(
            select(UserRoleModel).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.establishment_id == establishment_id,
                UserRoleModel.role == role,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing
        grant = UserRoleModel(user_id=user_id, establishment_id=establishment_id, role=role)
        session.add(grant)
        await session.flush()
        return grant

    async def list_roles(
        self, session: AsyncSession, establishment_id: str,
    ) -> list[UserRoleModel]:
        result = await session.execute(
            select(UserRoleModel).where(UserRoleModel.establishment_id == establishment_id)
        )
        return list(result.scalars().all())

    async def upsert_commercial_record(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        plano_atual: str,
        status: str,
        acesso_ate: datetime | None,
        nome_estabelecimento: str | None = None,
        endereco: str | None = None,
        telefone: str | None = None,
        nome_proprietario: str | None = None,
        email: str | None = None,
        trial_inicio: datetime | None = None,
        trial_fim: datetime | None = None,
    ) -> CommercialRecordModel:
        """Insert or overwrite the user's record (one per user)."""
        values: dict[str, Any] = {
            "nome_estabelecimento": nome_estabelecimento,
            "endereco": endereco,
            "telefone": telefone,
            "nome_proprietario": nome_proprietario,
            "email": email,
            "plano_atual": plano_atual,
            "status": status,
            "acesso_ate": acesso_ate,
            "trial_inicio": trial_inicio,
            "trial_fim": trial_fim,
        }
        record = await self.get_commercial_record(session, user_id)
        if record is None:
            record = CommercialRecordModel(user_id=user_id, **values)
            session.add(record)
        else:
            for field, value in values.items():
                setattr(record, field, value)
        await session.flush()
        return record

    async def get_commercial_record(
        self, session: AsyncSession, user_id: str,
    ) -> Optional[CommercialRecordModel]:
        result = await session.execute(
            select(CommercialRecordModel).where(CommercialRecordModel.user_id == user_id)
        )
        return result.scalar_one_or_none()
