"""HTTP-level behavior: validation messages, auth, acknowledgements, admin views."""

from nexus_checkout.deps import get_webhook_processor, override_clients
from nexus_checkout.trials.service import TRIAL_USED

from tests.conftest import ABACATE_SECRET, KIWIFY_TOKEN, SIGNUP_FORM

UNKNOWN_SESSION = "6f1c2b1e-9d7a-4c1e-8f5e-2a9b0c3d4e5f"


def _trial_form(**overrides) -> dict:
    form = {k: v for k, v in SIGNUP_FORM.items() if k not in ("cpf", "plan_id")}
    form["password"] = "s3nha-forte"
    form.update(overrides)
    return form


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["service"] == "nexus-checkout"


class TestCors:
    async def test_preflight(self, client):
        resp = await client.options(
            "/create-checkout",
            headers={
                "Origin": "https://nexus.test",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] in ("*", "https://nexus.test")


# ── Request validation ──


class TestStartVerificationValidation:
    async def test_short_tax_id(self, client):
        resp = await client.post("/start-email-verification", json={**SIGNUP_FORM, "cpf": "123"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "CPF ou CNPJ deve ter 11 ou 14 dígitos"}

    async def test_unknown_plan(self, client):
        resp = await client.post("/start-email-verification", json={**SIGNUP_FORM, "plan_id": "gold"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Plano inválido"

    async def test_bad_email(self, client):
        resp = await client.post("/start-email-verification", json={**SIGNUP_FORM, "email": "joana@"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Informe um email válido"

    async def test_missing_field(self, client):
        form = {k: v for k, v in SIGNUP_FORM.items() if k != "endereco"}
        resp = await client.post("/start-email-verification", json=form)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Campo obrigatório: endereco"

    async def test_tax_id_alias_and_ignored_price(self, client, email_sender):
        form = {k: v for k, v in SIGNUP_FORM.items() if k != "cpf"}
        resp = await client.post(
            "/start-email-verification",
            json={**form, "tax_id": "11.222.333/0001-81", "amount_cents": 1},
        )
        assert resp.status_code == 200
        assert len(email_sender.sent) == 1

    async def test_email_not_configured(self, client):
        override_clients(email_sender=None)
        resp = await client.post("/start-email-verification", json=SIGNUP_FORM)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Configuração do servidor incompleta."}

    async def test_email_failure(self, client, email_sender):
        email_sender.fail = True
        resp = await client.post("/start-email-verification", json=SIGNUP_FORM)
        assert resp.status_code == 500
        assert resp.json()["error"] == "Falha ao enviar o email de verificação."


class TestSessionIdValidation:
    async def test_checkout_invalid_uuid(self, client):
        resp = await client.post("/create-checkout", json={"session_id": "not-a-uuid"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "ID da sessão inválido"}

    async def test_checkout_unknown_session(self, client):
        resp = await client.post("/create-checkout", json={"session_id": UNKNOWN_SESSION})
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Sessão não encontrada."}

    async def test_status_unknown_session(self, client):
        resp = await client.post("/check-payment-status", json={"session_id": UNKNOWN_SESSION})
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    async def test_account_short_password(self, client):
        resp = await client.post("/create-account-after-payment", json={
            "session_id": UNKNOWN_SESSION, "password": "curta", "confirm_password": "curta",
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Senha deve ter no mínimo 8 caracteres"

    async def test_account_unknown_session_before_password_match(self, client):
        resp = await client.post("/create-account-after-payment", json={
            "session_id": UNKNOWN_SESSION, "password": "s3nha-forte", "confirm_password": "outra-senha",
        })
        assert resp.status_code == 404


# ── Webhooks ──


class TestKiwifyWebhookRoute:
    async def test_bad_token(self, client):
        resp = await client.post("/kiwify-webhook?token=wrong", json={"order_id": "1"})
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    async def test_header_token(self, client):
        resp = await client.post(
            "/kiwify-webhook",
            headers={"x-webhook-token": KIWIFY_TOKEN},
            json={"order_id": "1", "webhook_event_type": "order_approved",
                  "Customer": {"email": "stranger@example.com"}},
        )
        assert resp.status_code == 200
        assert resp.json() == {"received": True, "ignored": True, "reason": "session_not_found"}

    async def test_invalid_json(self, client):
        resp = await client.post(
            f"/kiwify-webhook?token={KIWIFY_TOKEN}",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"received": True, "ignored": True, "reason": "invalid_payload"}

    async def test_processing_error_is_acknowledged(self, client, monkeypatch):
        processor = get_webhook_processor()

        async def broken(session, event):
            raise RuntimeError("database went away")

        monkeypatch.setattr(processor, "process", broken)
        resp = await client.post(
            f"/kiwify-webhook?token={KIWIFY_TOKEN}", json={"order_id": "1", "event": "compra_aprovada"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"received": True, "error": True}


class TestAbacateWebhookRoute:
    async def test_bad_secret(self, client):
        resp = await client.post("/abacate-webhook?webhookSecret=nope", json={"event": "billing.paid"})
        assert resp.status_code == 401

    async def test_non_object_payload(self, client):
        resp = await client.post(f"/abacate-webhook?webhookSecret={ABACATE_SECRET}", json=["x"])
        assert resp.json() == {"received": True, "ignored": True, "reason": "invalid_payload"}


# ── Trials ──


class TestTrialRoute:
    async def test_signup_and_admin_view(self, client, admin_headers):
        resp = await client.post(
            "/public-signup-trial", json=_trial_form(), headers={"x-forwarded-for": "203.0.113.7"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["user_id"] == "user-1"

        resp = await client.get(f"/admin/establishments/{body['salao_id']}", headers=admin_headers)
        assert resp.status_code == 200
        view = resp.json()
        assert view["nome"] == "Studio Bela Vida"
        assert view["roles"] == [{"user_id": "user-1", "role": "admin"}]
        assert view["commercial_record"]["status"] == "trial"

    async def test_repeat_trial_blocked(self, client, identity):
        await client.post(
            "/public-signup-trial", json=_trial_form(), headers={"x-forwarded-for": "203.0.113.7"},
        )
        resp = await client.post(
            "/public-signup-trial",
            json=_trial_form(email="outra@example.com"),
            headers={"x-forwarded-for": "198.51.100.1"},
        )
        assert resp.status_code == 409
        assert resp.json() == {"success": False, "error": TRIAL_USED}
        assert "outra@example.com" not in identity.users

    async def test_short_fingerprint(self, client):
        resp = await client.post("/public-signup-trial", json=_trial_form(device_fingerprint="abc"))
        assert resp.status_code == 400
        assert resp.json()["error"] == "Identificador de dispositivo inválido"


# ── Admin ──


class TestAdminRoutes:
    async def test_wrong_key(self, client):
        resp = await client.get("/admin/sessions/orphaned", headers={"X-Nexus-Admin-Key": "wrong"})
        assert resp.status_code == 403

    async def test_missing_key(self, client):
        resp = await client.get("/admin/sessions/orphaned")
        assert resp.status_code == 422

    async def test_orphaned_empty(self, client, admin_headers):
        resp = await client.get("/admin/sessions/orphaned", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_session_detail(self, client, admin_headers, email_sender):
        await client.post("/start-email-verification", json=SIGNUP_FORM)
        resp = await client.post("/verify-email-token", json={"token": email_sender.last_token()})
        session_id = resp.json()["session_id"]
        await client.post(
            f"/kiwify-webhook?token={KIWIFY_TOKEN}",
            json={"event_id": "evt-77", "event": "compra_aprovada",
                  "customer": {"email": "joana@example.com"}},
        )

        resp = await client.get(f"/admin/sessions/{session_id}", headers=admin_headers)
        assert resp.status_code == 200
        detail = resp.json()
        assert detail["status"] == "paid_waiting_account"
        assert detail["status_pagamento"] == "compra_aprovada"
        assert [e["event_id"] for e in detail["events"]] == ["evt-77"]

        resp = await client.get(f"/admin/audit/{session_id}", headers=admin_headers)
        types = [e["event_type"] for e in resp.json()]
        assert types[0] == "payment.confirmed"
        assert types[-1] == "session.created"

    async def test_unknown_session_detail(self, client, admin_headers):
        resp = await client.get(f"/admin/sessions/{UNKNOWN_SESSION}", headers=admin_headers)
        assert resp.status_code == 404
