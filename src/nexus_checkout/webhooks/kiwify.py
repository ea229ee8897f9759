"""Kiwify webhook adapter: authentication and payload normalization."""

import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional

from nexus_checkout.common.documents import only_digits
from nexus_checkout.common.security import secrets_match
from nexus_checkout.common.text import fold_accents
from nexus_checkout.webhooks.events import CanonicalEvent, EventKind, SessionHint

logger = logging.getLogger(__name__)

PROVIDER = "kiwify"

# Kiwify has sent both Portuguese triggers and English webhook_event_type values.
_EVENT_KINDS: dict[str, EventKind] = {
    "compra_aprovada": EventKind.PURCHASE_APPROVED,
    "order_approved": EventKind.PURCHASE_APPROVED,
    "assinatura_renovada": EventKind.SUBSCRIPTION_RENEWED,
    "subscription_renewed": EventKind.SUBSCRIPTION_RENEWED,
    "pix_gerado": EventKind.PIX_GENERATED,
    "pix_created": EventKind.PIX_GENERATED,
    "reembolso": EventKind.REFUND,
    "order_refunded": EventKind.REFUND,
    "assinatura_cancelada": EventKind.SUBSCRIPTION_CANCELED,
    "subscription_canceled": EventKind.SUBSCRIPTION_CANCELED,
    "assinatura_atrasada": EventKind.SUBSCRIPTION_LATE,
    "subscription_late": EventKind.SUBSCRIPTION_LATE,
    "boleto_gerado": EventKind.BILLET_GENERATED,
    "billet_created": EventKind.BILLET_GENERATED,
    "compra_recusada": EventKind.PURCHASE_REFUSED,
    "order_rejected": EventKind.PURCHASE_REFUSED,
    "chargeback": EventKind.CHARGEBACK,
}


def _dig(payload: Mapping[str, Any], *path: str) -> Any:
    node: Any = payload
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _first(payload: Mapping[str, Any], *paths: tuple[str, ...]) -> Optional[str]:
    """First non-empty value among several dotted paths, as a stripped string."""
    for path in paths:
        value = _dig(payload, *path)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


# ── Authentication ──

def extract_token(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    payload: Mapping[str, Any],
) -> str:
    bearer = headers.get("authorization", "")
    if bearer.lower().startswith("bearer "):
        bearer = bearer[7:].strip()
    return (
        headers.get("x-webhook-token")
        or headers.get("x-kiwify-token")
        or bearer
        or _first(payload, ("token",), ("webhook_token",))
        or query.get("token")
        or ""
    )


def compute_signature(body: bytes, token: str) -> str:
    return hmac.new(token.encode(), body, hashlib.sha1).hexdigest()


def verify_signature(body: bytes, signature: str, token: str) -> bool:
    """Kiwify's ``?signature=`` is HMAC-SHA1 of the raw body keyed by the token."""
    if not signature or not token:
        return False
    return hmac.compare_digest(compute_signature(body, token), signature.strip().lower())


def authenticate(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    payload: Mapping[str, Any],
    body: bytes,
    expected_token: str,
) -> bool:
    if not expected_token:
        logger.error("NEXUS_KIWIFY_WEBHOOK_TOKEN is not set; rejecting webhook")
        return False
    if secrets_match(extract_token(headers, query, payload), expected_token):
        return True
    return verify_signature(body, query.get("signature", ""), expected_token)


# ── Normalization ──

def event_type(payload: Mapping[str, Any]) -> str:
    raw = _first(
        payload,
        ("webhooks_event", "type"),
        ("event",),
        ("type",),
        ("data", "event"),
        ("webhook_event_type",),
    )
    return (raw or "").lower()


def _order_id(payload: Mapping[str, Any]) -> Optional[str]:
    return _first(
        payload,
        ("order", "id"),
        ("order_id",),
        ("sale_id",),
        ("transaction_id",),
    )


def event_id(payload: Mapping[str, Any], kind_name: str = "") -> Optional[str]:
    """Explicit event ids are used as-is; order ids are qualified by event type.

    One order produces several events (pix_gerado, then compra_aprovada),
    so an order id alone would make the second look like a redelivery.
    """
    explicit = _first(payload, ("event_id",), ("id",), ("webhooks_event", "id"))
    if explicit:
        return explicit
    order_id = _order_id(payload)
    if order_id:
        return f"{order_id}:{kind_name}" if kind_name else order_id
    return None


def infer_plan(payload: Mapping[str, Any]) -> Optional[str]:
    """Plan from the purchased product/offer name, if recognizable."""
    raw = _first(
        payload,
        ("product", "name"),
        ("offer", "name"),
        ("plan", "name"),
        ("product_name",),
        ("Product", "product_name"),
    )
    if not raw:
        return None
    name = fold_accents(raw).lower()
    if "pro" in name and "ia" in name:
        return "pro_ia"
    if "profissional" in name:
        return "profissional"
    return None


def parse_event(payload: Mapping[str, Any]) -> CanonicalEvent:
    etype = event_type(payload)
    kind = _EVENT_KINDS.get(etype, EventKind.OTHER)
    email = _first(payload, ("customer", "email"), ("Customer", "email"), ("email",))
    document = only_digits(
        _first(
            payload,
            ("customer", "document"),
            ("customer", "cpf"),
            ("customer", "cnpj"),
            ("Customer", "CPF"),
            ("Customer", "CNPJ"),
            ("document",),
        )
    )
    return CanonicalEvent(
        provider=PROVIDER,
        event_type=etype,
        kind=kind,
        event_id=event_id(payload, etype),
        hint=SessionHint(
            bill_id=_order_id(payload),
            email=email.lower() if email else None,
            tax_id=document or None,
        ),
        plan_id=infer_plan(payload),
        payload=dict(payload),
    )
