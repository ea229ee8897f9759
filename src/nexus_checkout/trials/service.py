"""Free-trial signup guarded by hashed identity locks."""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.documents import only_digits
from nexus_checkout.common.exceptions import ConflictError, InternalError
from nexus_checkout.common.models import utcnow
from nexus_checkout.common.security import sha256_hex
from nexus_checkout.common.text import normalize_text
from nexus_checkout.provisioning.identity_client import (
    IdentityClient,
    IdentityConflictError,
    IdentityError,
)
from nexus_checkout.sessions.plans import DEFAULT_PLAN
from nexus_checkout.tenants.service import ADMIN_ROLE, EstablishmentService
from nexus_checkout.trials.models import TrialLockModel
from nexus_checkout.trials.schemas import TrialSignupRequest

logger = logging.getLogger(__name__)

TRIAL_USED = "Teste grátis já utilizado para alguns dos dados informados."
_ADDRESS_PUNCTUATION = re.compile(r"[.,#-]")


def normalize_address(value: str | None) -> str:
    return normalize_text(_ADDRESS_PUNCTUATION.sub(" ", value or ""))


def client_ip(forwarded_for: str | None) -> str:
    """First hop of X-Forwarded-For, or "unknown"."""
    first = (forwarded_for or "").split(",")[0].strip()
    return first or "unknown"


@dataclass(frozen=True)
class TrialLock:
    lock_type: str
    lock_hash: str


def build_locks(
    *,
    telefone: str,
    endereco: str,
    nome_proprietario: str,
    ip: str,
    device_fingerprint: str | None = None,
) -> list[TrialLock]:
    """Locks in the order they are claimed: phone, address, name, ip, fingerprint."""
    locks = [
        TrialLock("phone", sha256_hex(only_digits(telefone))),
        TrialLock("address", sha256_hex(normalize_address(endereco))),
        TrialLock("name", sha256_hex(normalize_text(nome_proprietario))),
        TrialLock("ip", sha256_hex(ip)),
    ]
    fingerprint = normalize_text(device_fingerprint)
    if fingerprint:
        locks.append(TrialLock("fingerprint", sha256_hex(fingerprint)))
    return locks


class TrialLockRegistry:
    """Claims locks one at a time; each claim commits on its own.

    The first collision stops the run. Locks claimed before it stay.
    """

    async def claim(self, session: AsyncSession, locks: list[TrialLock]) -> Optional[str]:
        """Return the lock_type that collided, or None when all were claimed."""
        for lock in locks:
            session.add(TrialLockModel(lock_type=lock.lock_type, lock_hash=lock.lock_hash))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Trial lock collision on %s", lock.lock_type)
                return lock.lock_type
        return None


class TrialSignupService:
    """Legacy signup: unconfirmed identity account with a trial access window."""

    def __init__(
        self,
        settings: NexusSettings,
        registry: TrialLockRegistry,
        establishments: EstablishmentService,
        identity_client: Optional[IdentityClient] = None,
    ):
        self.settings = settings
        self.registry = registry
        self.establishments = establishments
        self.identity_client = identity_client

    async def signup(
        self, session: AsyncSession, request: TrialSignupRequest, ip: str,
    ) -> tuple[str, str]:
        """Returns ``(user_id, establishment_id)``."""
        if self.identity_client is None:
            logger.error("Identity provider not configured")
            raise InternalError("Configuração do servidor incompleta.")

        try:
            user_id = await self.identity_client.create_user(
                request.email,
                request.password,
                email_confirm=False,
            )
        except IdentityConflictError:
            raise ConflictError("Email já cadastrado", code="EMAIL_EXISTS")
        except IdentityError as exc:
            logger.error("Trial identity create failed: %s (HTTP %s)", exc, exc.status_code)
            raise InternalError()

        locks = build_locks(
            telefone=request.telefone,
            endereco=request.endereco,
            nome_proprietario=request.nome_proprietario,
            ip=ip,
            device_fingerprint=request.device_fingerprint,
        )
        try:
            collided = await self.registry.claim(session, locks)
        except SQLAlchemyError:
            logger.exception("Trial lock insert failed", extra={"identity_user_id": user_id})
            raise InternalError()

        if collided:
            await self._discard_identity_user(user_id)
            raise ConflictError(TRIAL_USED, code="TRIAL_LOCKED")

        now = utcnow()
        trial_end = now + timedelta(days=self.settings.trial_days)
        try:
            establishment = await self.establishments.create_establishment(
                session,
                nome=request.nome_estabelecimento,
                telefone=request.telefone,
                endereco=request.endereco,
                created_by_user_id=user_id,
            )
            await self.establishments.grant_role(session, user_id, establishment.id, ADMIN_ROLE)
            await self.establishments.upsert_commercial_record(
                session,
                user_id,
                nome_estabelecimento=request.nome_estabelecimento,
                endereco=request.endereco,
                telefone=request.telefone,
                nome_proprietario=request.nome_proprietario,
                email=request.email,
                plano_atual=DEFAULT_PLAN,
                status="trial",
                trial_inicio=now,
                trial_fim=trial_end,
                acesso_ate=trial_end,
            )
            await session.commit()
        except SQLAlchemyError:
            logger.exception("Trial resources failed", extra={"identity_user_id": user_id})
            raise InternalError()

        logger.info(
            "Trial started",
            extra={"identity_user_id": user_id, "establishment_id": establishment.id},
        )
        return user_id, establishment.id

    async def _discard_identity_user(self, user_id: str) -> None:
        try:
            await self.identity_client.delete_user(user_id)
        except IdentityError:
            logger.exception(
                "Could not delete identity user after trial lock collision",
                extra={"identity_user_id": user_id},
            )
