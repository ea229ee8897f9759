"""Tests for free-trial signup and its anti-fraud locks."""

import pytest
from sqlalchemy import select

from nexus_checkout.common.config import NexusSettings
from nexus_checkout.common.database import DatabaseManager
from nexus_checkout.common.exceptions import ConflictError, InternalError
from nexus_checkout.common.models import as_utc
from nexus_checkout.common.security import sha256_hex
from nexus_checkout.tenants.service import EstablishmentService
from nexus_checkout.trials.models import TrialLockModel
from nexus_checkout.trials.schemas import TrialSignupRequest
from nexus_checkout.trials.service import (
    TrialLock,
    TrialLockRegistry,
    TrialSignupService,
    build_locks,
)

from tests.conftest import SIGNUP_FORM, FakeIdentityClient


def make_settings(**overrides) -> NexusSettings:
    defaults = {"db_url": "sqlite+aiosqlite://", "audit_hmac_key": "test-audit-key"}
    defaults.update(overrides)
    return NexusSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def identity():
    return FakeIdentityClient()


@pytest.fixture
def establishments():
    return EstablishmentService()


@pytest.fixture
def svc(identity, establishments):
    return TrialSignupService(make_settings(), TrialLockRegistry(), establishments, identity)


def _request(**overrides) -> TrialSignupRequest:
    fields = {k: v for k, v in SIGNUP_FORM.items() if k not in ("cpf", "plan_id")}
    fields["password"] = "s3nha-forte"
    fields.update(overrides)
    return TrialSignupRequest(**fields)


async def _signup(db, svc, request, ip="203.0.113.7"):
    async with db.get_session() as session:
        return await svc.signup(session, request, ip)


async def _lock_types(db) -> list[str]:
    async with db.get_session() as session:
        result = await session.execute(select(TrialLockModel.lock_type))
        return sorted(result.scalars().all())


class TestBuildLocks:
    def test_order_and_hashing(self):
        locks = build_locks(
            telefone="(48) 99101-5688",
            endereco="Rua das Flores, 123",
            nome_proprietario="Joana  Souza",
            ip="203.0.113.7",
        )
        assert [lock.lock_type for lock in locks] == ["phone", "address", "name", "ip"]
        assert locks[0].lock_hash == sha256_hex("48991015688")
        assert locks[2].lock_hash == sha256_hex("joana souza")

    def test_fingerprint_optional(self):
        locks = build_locks(
            telefone="1", endereco="a", nome_proprietario="b", ip="c",
            device_fingerprint="FP-12345678",
        )
        assert locks[-1] == TrialLock("fingerprint", sha256_hex("fp-12345678"))

    def test_equivalent_inputs_share_hashes(self):
        a = build_locks(telefone="48 99101-5688", endereco="Rua Ação, 1", nome_proprietario="JOANA", ip="x")
        b = build_locks(telefone="(48)991015688", endereco="rua acao 1", nome_proprietario="joana", ip="x")
        assert a == b


class TestSignup:
    async def test_creates_trial_resources(self, db, svc, identity, establishments):
        user_id, establishment_id = await _signup(db, svc, _request())
        assert identity.users["joana@example.com"]["email_confirm"] is False

        async with db.get_session() as session:
            establishment = await establishments.get_establishment(session, establishment_id)
            roles = await establishments.list_roles(session, establishment_id)
            record = await establishments.get_commercial_record(session, user_id)
        assert establishment.created_by_user_id == user_id
        assert [r.role for r in roles] == ["admin"]
        assert record.status == "trial"
        assert record.plano_atual == "profissional"
        assert (as_utc(record.trial_fim) - as_utc(record.trial_inicio)).days == 7
        assert record.acesso_ate == record.trial_fim

    async def test_claims_all_locks(self, db, svc):
        await _signup(db, svc, _request(device_fingerprint="device-abcdef"))
        assert await _lock_types(db) == ["address", "fingerprint", "ip", "name", "phone"]

    async def test_email_already_registered(self, db, svc, identity):
        await _signup(db, svc, _request())
        with pytest.raises(ConflictError) as exc_info:
            await _signup(db, svc, _request(), ip="198.51.100.1")
        assert exc_info.value.code == "EMAIL_EXISTS"

    async def test_identity_failure(self, db, svc, identity):
        identity.fail = True
        with pytest.raises(InternalError):
            await _signup(db, svc, _request())
        assert await _lock_types(db) == []


class TestLockCollision:
    async def test_reused_phone_blocks_and_discards_user(self, db, svc, identity):
        await _signup(db, svc, _request())
        second = _request(
            email="outra@example.com",
            endereco="Avenida Central, 900",
            nome_proprietario="Maria Lima",
        )
        with pytest.raises(ConflictError) as exc_info:
            await _signup(db, svc, second, ip="198.51.100.1")
        assert exc_info.value.code == "TRIAL_LOCKED"
        assert exc_info.value.message == "Teste grátis já utilizado para alguns dos dados informados."
        assert "outra@example.com" not in identity.users
        assert identity.deleted == ["user-2"]

    async def test_reused_ip_blocks(self, db, svc):
        await _signup(db, svc, _request())
        other = _request(
            email="outra@example.com",
            telefone="(11) 98888-7777",
            endereco="Avenida Central, 900",
            nome_proprietario="Maria Lima",
        )
        with pytest.raises(ConflictError):
            await _signup(db, svc, other)

    async def test_locks_before_collision_are_kept(self, db, svc):
        await _signup(db, svc, _request(), ip="203.0.113.7")
        other = _request(
            email="outra@example.com",
            telefone="(11) 98888-7777",
            endereco="Avenida Central, 900",
            nome_proprietario="Joana Souza",
        )
        with pytest.raises(ConflictError):
            await _signup(db, svc, other, ip="198.51.100.1")
        # phone and address of the second attempt were claimed before the name collided
        assert await _lock_types(db) == sorted(
            ["phone", "address", "name", "ip", "phone", "address"]
        )
