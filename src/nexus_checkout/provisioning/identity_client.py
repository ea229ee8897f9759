"""HTTP client for the identity provider's admin user API."""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

_ALREADY_REGISTERED_MARKERS = ("already", "registered", "exists")


class IdentityError(Exception):
    """The identity provider refused or failed a request."""

    def __init__(self, message: str, status_code: int = 0, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class IdentityConflictError(IdentityError):
    """The email already belongs to an identity account."""


class IdentityClient:
    """Creates and deletes users through ``/auth/v1/admin/users``."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    async def create_user(
        self,
        email: str,
        password: str,
        *,
        email_confirm: bool,
        user_metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create an identity account and return its id.

        Raises IdentityConflictError when the email is already registered.
        """
        payload = {
            "email": email,
            "password": password,
            "email_confirm": email_confirm,
            "user_metadata": user_metadata or {},
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.post(
                    f"{self.base_url}/auth/v1/admin/users",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise IdentityError(f"identity provider unreachable: {exc}") from exc

        body = _json_or_text(resp)
        if resp.status_code >= 300:
            message = _error_message(body)
            if any(marker in message.lower() for marker in _ALREADY_REGISTERED_MARKERS):
                raise IdentityConflictError(message, resp.status_code, body)
            raise IdentityError(message or "create_user failed", resp.status_code, body)

        user = body.get("user", body) if isinstance(body, dict) else {}
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            raise IdentityError("identity provider returned no user id", resp.status_code, body)
        return str(user_id)

    async def update_user(self, user_id: str, *, password: str) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.put(
                    f"{self.base_url}/auth/v1/admin/users/{user_id}",
                    json={"password": password},
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise IdentityError(f"identity provider unreachable: {exc}") from exc
        if resp.status_code >= 300:
            body = _json_or_text(resp)
            raise IdentityError(_error_message(body) or "update_user failed", resp.status_code, body)

    async def delete_user(self, user_id: str) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.delete(
                    f"{self.base_url}/auth/v1/admin/users/{user_id}",
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise IdentityError(f"identity provider unreachable: {exc}") from exc
        if resp.status_code >= 300 and resp.status_code != 404:
            body = _json_or_text(resp)
            raise IdentityError(_error_message(body), resp.status_code, body)


def _json_or_text(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return str(body or "")
