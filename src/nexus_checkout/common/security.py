"""Header-key and shared-secret checks."""

import hashlib
import hmac

from fastapi import Header, HTTPException


async def require_admin_key(
    x_nexus_admin_key: str = Header(..., alias="X-Nexus-Admin-Key"),
) -> str:
    """FastAPI dependency that validates the admin API key from header."""
    from nexus_checkout.common.config import get_settings

    settings = get_settings()
    if not hmac.compare_digest(x_nexus_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_nexus_admin_key


def secrets_match(received: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""
    if not expected or not received:
        return False
    return hmac.compare_digest(received.encode(), expected.encode())


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
