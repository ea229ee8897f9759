"""AbacatePay webhook adapter."""

from typing import Any, Mapping, Optional

from nexus_checkout.common.documents import only_digits
from nexus_checkout.common.security import secrets_match
from nexus_checkout.webhooks.events import CanonicalEvent, EventKind, SessionHint

PROVIDER = "abacatepay"

_EVENT_KINDS: dict[str, EventKind] = {
    "billing.paid": EventKind.PURCHASE_APPROVED,
    "billing.refunded": EventKind.REFUND,
    "billing.disputed": EventKind.CHARGEBACK,
}


def authenticate(query: Mapping[str, str], expected_secret: str) -> bool:
    """The secret travels as the ``webhookSecret`` query parameter."""
    return secrets_match(query.get("webhookSecret"), expected_secret)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_event(payload: Mapping[str, Any]) -> CanonicalEvent:
    data = payload.get("data") or {}
    billing = data.get("billing") or {}
    pix = data.get("pixQrCode") or {}
    customer = (billing.get("customer") or {}).get("metadata") or {}

    etype = (_text(payload.get("event")) or "").lower()
    email = _text(customer.get("email"))
    tax_id = only_digits(_text(customer.get("taxId")))
    return CanonicalEvent(
        provider=PROVIDER,
        event_type=etype,
        kind=_EVENT_KINDS.get(etype, EventKind.OTHER),
        event_id=_text(payload.get("id")),
        hint=SessionHint(
            bill_id=_text(billing.get("id")) or _text(pix.get("id")),
            email=email.lower() if email else None,
            tax_id=tax_id or None,
        ),
        payload=dict(payload),
    )
