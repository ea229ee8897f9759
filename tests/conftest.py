"""Shared test fixtures for Nexus checkout."""

import json
import re

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from nexus_checkout.checkout.abacate_client import AbacatePayClient
from nexus_checkout.provisioning.identity_client import (
    IdentityConflictError,
    IdentityError,
)

ADMIN_KEY = "test-admin-api-key"
AUDIT_KEY = "test-audit-hmac-key"
KIWIFY_TOKEN = "test-kiwify-token"
ABACATE_SECRET = "test-abacate-secret"

VALID_CPF = "529.982.247-25"
VALID_CNPJ = "11.222.333/0001-81"

SIGNUP_FORM = {
    "nome_estabelecimento": "Studio Bela Vida",
    "endereco": "Rua das Flores, 123 - Centro",
    "telefone": "(48) 99101-5688",
    "nome_proprietario": "Joana Souza",
    "email": "joana@example.com",
    "cpf": VALID_CPF,
    "plan_id": "pro_ia",
}

_TOKEN_IN_LINK = re.compile(r"verificar-email\?token=([A-Za-z0-9_\-]+)")


# ── In-process fakes for external services ──


class FakeEmailSender:
    """Records every message; ``fail = True`` makes sends report failure."""

    def __init__(self, test_to: str = ""):
        self.test_to = test_to
        self.sent: list[dict] = []
        self.fail = False

    @property
    def test_mode(self) -> bool:
        return bool(self.test_to)

    async def send(self, to: str, subject: str, html: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True

    def last_token(self) -> str:
        for message in reversed(self.sent):
            match = _TOKEN_IN_LINK.search(message["html"])
            if match:
                return match.group(1)
        raise AssertionError("no verification email was sent")


class FakeIdentityClient:
    """Identity provider keeping users in a dict keyed by lowercase email."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.deleted: list[str] = []
        self.create_calls = 0
        self.update_calls = 0
        self.fail = False

    async def create_user(self, email, password, *, email_confirm, user_metadata=None):
        self.create_calls += 1
        if self.fail:
            raise IdentityError("identity provider down", 503)
        key = email.lower()
        if key in self.users:
            raise IdentityConflictError(
                "A user with this email address has already been registered", 422,
            )
        user_id = f"user-{len(self.users) + len(self.deleted) + 1}"
        self.users[key] = {
            "id": user_id,
            "password": password,
            "email_confirm": email_confirm,
            "user_metadata": user_metadata or {},
        }
        return user_id

    async def update_user(self, user_id, *, password):
        self.update_calls += 1
        if self.fail:
            raise IdentityError("identity provider down", 503)
        for user in self.users.values():
            if user["id"] == user_id:
                user["password"] = password
                return
        raise IdentityError("User not found", 404)

    async def delete_user(self, user_id):
        self.deleted.append(user_id)
        self.users = {k: v for k, v in self.users.items() if v["id"] != user_id}


class FakeAbacatePay:
    """MockTransport answering ``POST /v1/billing/create`` with numbered bills."""

    def __init__(self):
        self.requests: list[dict] = []
        self.status_code = 200
        self.response: dict | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append({"url": str(request.url), "headers": request.headers, "json": body})
        if self.response is not None:
            return httpx.Response(self.status_code, json=self.response)
        bill_id = f"bill_{len(self.requests)}"
        return httpx.Response(
            self.status_code,
            json={"data": {"id": bill_id, "url": f"https://pay.abacatepay.com/{bill_id}"}, "error": None},
        )

    def client(self, api_key: str = "abacate-test-key") -> AbacatePayClient:
        return AbacatePayClient(
            api_key=api_key,
            base_url="https://api.abacatepay.test",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def identity():
    return FakeIdentityClient()


@pytest.fixture
def abacate():
    return FakeAbacatePay()


@pytest.fixture
def signup_form():
    return dict(SIGNUP_FORM)


# ── Application ──


@pytest.fixture
def app(monkeypatch, email_sender, identity, abacate):
    """Create a test app with in-memory DB and fake external services."""
    monkeypatch.setenv("NEXUS_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("NEXUS_ADMIN_API_KEY", ADMIN_KEY)
    monkeypatch.setenv("NEXUS_AUDIT_HMAC_KEY", AUDIT_KEY)
    monkeypatch.setenv("NEXUS_KIWIFY_WEBHOOK_TOKEN", KIWIFY_TOKEN)
    monkeypatch.setenv("NEXUS_ABACATEPAY_WEBHOOK_SECRET", ABACATE_SECRET)
    monkeypatch.setenv("NEXUS_PUBLIC_SITE_URL", "https://nexus.test")
    monkeypatch.setenv("NEXUS_AUTH_BASE_URL", "https://app.nexus.test")

    # Clear caches and singletons so new env vars take effect
    from nexus_checkout.common.config import get_settings
    get_settings.cache_clear()

    from nexus_checkout.deps import override_clients, reset_singletons
    reset_singletons()
    override_clients(
        email_sender=email_sender,
        payment_client=abacate.client(),
        identity_client=identity,
    )

    from nexus_checkout.app import create_app
    yield create_app()

    reset_singletons()
    get_settings.cache_clear()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from nexus_checkout.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Nexus-Admin-Key": ADMIN_KEY}
