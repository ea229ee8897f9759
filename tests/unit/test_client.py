"""Tests for client.py — SignupClient SDK."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from nexus_checkout.client import ClientPaymentStatus, SignupClient


def _mock_response(data, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    return resp


def _transport_client(handler, **kwargs) -> SignupClient:
    return SignupClient(
        server_url="http://nexus.test", transport=httpx.MockTransport(handler), **kwargs,
    )


class TestSignupClientInit:
    def test_defaults(self):
        client = SignupClient()
        assert client.server_url == "http://localhost:8080"
        assert client.admin_key is None
        assert client.max_retries == 3
        client.close()

    def test_strips_trailing_slash(self):
        with SignupClient(server_url="http://custom:9090/", admin_key="k") as client:
            assert client.server_url == "http://custom:9090"
            assert client._admin_headers() == {"X-Nexus-Admin-Key": "k"}


# ── Signup flow ──


class TestSignupCalls:
    def test_create_checkout(self):
        def handler(request):
            assert request.url.path == "/create-checkout"
            return httpx.Response(200, json={
                "success": True, "checkout_url": "https://pay/bill_1", "session_id": "s1",
            })

        with _transport_client(handler) as client:
            result = client.create_checkout("s1")
        assert result.success is True
        assert result.data["checkout_url"] == "https://pay/bill_1"

    def test_error_body(self):
        def handler(request):
            return httpx.Response(403, json={
                "success": False, "error": "Email não verificado. Verifique seu email antes de pagar.",
            })

        with _transport_client(handler) as client:
            result = client.create_checkout("s1")
        assert result.success is False
        assert result.status_code == 403
        assert result.error.startswith("Email não verificado")

    def test_create_account_defaults_confirmation(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "message": "Conta criada com sucesso!"})

        with _transport_client(handler) as client:
            assert client.create_account("s1", "s3nha-forte").success
        assert seen["confirm_password"] == "s3nha-forte"


# ── Polling ──


class TestPaymentStatus:
    def test_parses_dates(self):
        def handler(request):
            return httpx.Response(200, json={
                "status": "paid_waiting_account",
                "plan_id": "pro_ia",
                "user_email": "a@b.com",
                "paid_at": "2026-10-19T12:00:00Z",
                "created_user_at": None,
            })

        with _transport_client(handler) as client:
            status = client.check_payment_status("s1")
        assert status.paid is True
        assert status.account_created is False
        assert status.paid_at.year == 2026

    def test_not_found(self):
        def handler(request):
            return httpx.Response(404, json={"success": False, "error": "Sessão não encontrada"})

        with _transport_client(handler) as client:
            status = client.check_payment_status("s1")
        assert status.paid is False
        assert status.error == "Sessão não encontrada"


class TestWaitForPayment:
    def test_stops_when_paid(self):
        statuses = iter(["pending_payment", "pending_payment", "paid_waiting_account"])

        def handler(request):
            return httpx.Response(200, json={
                "status": next(statuses), "plan_id": "profissional", "user_email": "a@b.com",
            })

        sleeps = []
        with _transport_client(handler) as client:
            result = client.wait_for_payment("s1", max_attempts=10, interval=3.0, sleep=sleeps.append)
        assert result.paid is True
        assert result.attempts == 3
        assert sleeps == [3.0, 3.0]

    def test_gives_up_after_max_attempts(self):
        def handler(request):
            return httpx.Response(200, json={
                "status": "pending_payment", "plan_id": "profissional", "user_email": "a@b.com",
            })

        sleeps = []
        with _transport_client(handler) as client:
            result = client.wait_for_payment("s1", max_attempts=4, interval=1.5, sleep=sleeps.append)
        assert result.paid is False
        assert result.attempts == 4
        assert len(sleeps) == 3

    def test_status_dataclass_defaults(self):
        status = ClientPaymentStatus()
        assert status.paid is False
        assert status.account_created is False


# ── Resilience ──


class TestRetries:
    @patch("nexus_checkout.client.time.sleep")
    def test_retry_on_timeout(self, mock_sleep):
        client = SignupClient(max_retries=3)
        client._http = MagicMock()
        client._http.post.side_effect = httpx.TimeoutException("timeout")

        status_code, body = client._request("post", "/check-payment-status", json={})
        assert status_code == 0
        assert body["code"] == "CONNECTION_ERROR"
        assert client._http.post.call_count == 3
        client.close()

    @patch("nexus_checkout.client.time.sleep")
    def test_retry_on_500(self, mock_sleep):
        client = SignupClient(max_retries=3)
        client._http = MagicMock()
        client._http.post.return_value = _mock_response({"error": "boom"}, status_code=500)

        status_code, _ = client._request("post", "/create-checkout", json={})
        assert status_code == 500
        assert client._http.post.call_count == 3
        client.close()

    def test_no_retry_on_4xx(self):
        client = SignupClient(max_retries=3)
        client._http = MagicMock()
        client._http.post.return_value = _mock_response({"error": "x"}, status_code=400)

        status_code, _ = client._request("post", "/create-checkout", json={})
        assert status_code == 400
        assert client._http.post.call_count == 1
        client.close()


class TestAdmin:
    def test_list_orphaned_sessions(self):
        def handler(request):
            assert request.headers["x-nexus-admin-key"] == "admin"
            assert request.url.params["limit"] == "5"
            return httpx.Response(200, json=[{"id": "s1", "user_email": "a@b.com", "status": "paid_waiting_account"}])

        with _transport_client(handler, admin_key="admin") as client:
            rows = client.list_orphaned_sessions(limit=5)
        assert rows[0]["id"] == "s1"

    def test_list_orphaned_sessions_forbidden(self):
        def handler(request):
            return httpx.Response(403, json={"detail": "Invalid admin key"})

        with _transport_client(handler, admin_key="wrong", max_retries=1) as client:
            with pytest.raises(RuntimeError, match="HTTP 403"):
                client.list_orphaned_sessions()
