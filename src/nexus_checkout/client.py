"""
SignupClient SDK — sync client for the Nexus checkout API.

Drives the signup flow from scripts or other services, and implements the
bounded polling the payment-return page performs while it waits for a
webhook to confirm payment.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import httpx

PAID_STATUSES = ("paid_waiting_account", "paid")


@dataclass
class ClientResult:
    """Outcome of a call that answers ``{success, ...}``."""

    success: bool
    error: str = ""
    code: str = ""
    status_code: int = 0
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ClientPaymentStatus:
    status: str = ""
    plan_id: str = ""
    user_email: str = ""
    paid_at: Optional[datetime] = None
    created_user_at: Optional[datetime] = None
    attempts: int = 0
    error: str = ""

    @property
    def paid(self) -> bool:
        return self.status in PAID_STATUSES

    @property
    def account_created(self) -> bool:
        return self.created_user_at is not None


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class SignupClient:
    """
    Synchronous HTTP client for the Nexus checkout API.

    Only timeouts, transport errors, 5xx and 429 are retried; every other
    response is returned as-is for the caller to inspect.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        admin_key: Optional[str] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.admin_key = admin_key
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
            transport=transport,
        )

    def _admin_headers(self) -> dict[str, str]:
        headers = {}
        if self.admin_key:
            headers["X-Nexus-Admin-Key"] = self.admin_key
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> tuple[int, Any]:
        """Central HTTP method with retry. Returns ``(status_code, body)``.

        ``status_code`` is 0 when no response was obtained.
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = getattr(self._http, method)(path, **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                try:
                    return resp.status_code, resp.json()
                except json.JSONDecodeError:
                    return resp.status_code, {"error": "Invalid JSON response", "code": "JSON_ERROR"}
            except httpx.TimeoutException:
                last_error = "timeout"
            except httpx.HTTPError as e:
                last_error = str(e)
            if attempt < self.max_retries - 1:
                time.sleep(self.retry_backoff_base * (2 ** attempt))

        return 0, {
            "error": f"All {self.max_retries} retries exhausted: {last_error}",
            "code": "CONNECTION_ERROR",
        }

    def _result(self, status_code: int, body: Any) -> ClientResult:
        body = body if isinstance(body, dict) else {}
        ok = 200 <= status_code < 300 and body.get("success", True) is not False
        return ClientResult(
            success=ok,
            error="" if ok else str(body.get("error", "")),
            code=str(body.get("code", "")),
            status_code=status_code,
            data=body,
        )

    # ── Signup flow ──

    def start_verification(self, **form: Any) -> ClientResult:
        """Submit the signup form; ``form`` uses the API's field names."""
        return self._result(*self._request("post", "/start-email-verification", json=form))

    def verify_token(self, token: str) -> ClientResult:
        return self._result(*self._request("post", "/verify-email-token", json={"token": token}))

    def create_checkout(self, session_id: str) -> ClientResult:
        return self._result(*self._request(
            "post", "/create-checkout", json={"session_id": session_id},
        ))

    def create_account(
        self, session_id: str, password: str, confirm_password: str | None = None,
    ) -> ClientResult:
        return self._result(*self._request(
            "post", "/create-account-after-payment",
            json={
                "session_id": session_id,
                "password": password,
                "confirm_password": password if confirm_password is None else confirm_password,
            },
        ))

    # ── Status polling ──

    def check_payment_status(self, session_id: str) -> ClientPaymentStatus:
        status_code, body = self._request(
            "post", "/check-payment-status", json={"session_id": session_id},
        )
        body = body if isinstance(body, dict) else {}
        if status_code != 200:
            return ClientPaymentStatus(error=str(body.get("error", f"HTTP {status_code}")))
        return ClientPaymentStatus(
            status=body.get("status", ""),
            plan_id=body.get("plan_id", ""),
            user_email=body.get("user_email", ""),
            paid_at=_parse_dt(body.get("paid_at")),
            created_user_at=_parse_dt(body.get("created_user_at")),
        )

    def wait_for_payment(
        self,
        session_id: str,
        max_attempts: int = 60,
        interval: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> ClientPaymentStatus:
        """Poll until the session is paid or ``max_attempts`` polls have run.

        Returns the last status seen; callers check ``.paid`` and show a
        "check back later" state when it is still False.
        """
        last = ClientPaymentStatus()
        for attempt in range(1, max_attempts + 1):
            last = self.check_payment_status(session_id)
            last.attempts = attempt
            if last.paid:
                return last
            if attempt < max_attempts:
                sleep(interval)
        return last

    # ── Admin ──

    def list_orphaned_sessions(self, limit: int = 100) -> list[dict[str, Any]]:
        status_code, body = self._request(
            "get", "/admin/sessions/orphaned",
            params={"limit": limit}, headers=self._admin_headers(),
        )
        if status_code != 200 or not isinstance(body, list):
            detail = body.get("error") or body.get("detail") if isinstance(body, dict) else body
            raise RuntimeError(f"Could not list orphaned sessions (HTTP {status_code}): {detail}")
        return body

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
