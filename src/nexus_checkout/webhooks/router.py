"""Inbound payment webhooks — Kiwify and AbacatePay.

Only a bad shared secret is rejected. Everything else, including our own
failures, is acknowledged with 200 so the provider does not retry-storm.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request

from nexus_checkout.common.config import get_settings
from nexus_checkout.common.exceptions import Unauthorized
from nexus_checkout.webhooks import abacate, kiwify
from nexus_checkout.webhooks.events import CanonicalEvent
from nexus_checkout.webhooks.schemas import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_processor():
    from nexus_checkout.deps import get_webhook_processor
    return get_webhook_processor()


def _get_db():
    from nexus_checkout.deps import get_db
    return get_db()


def _load_json(body: bytes) -> dict[str, Any] | None:
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


async def _process(event: CanonicalEvent) -> WebhookAck:
    processor = _get_processor()
    db = _get_db()
    async with db.get_session() as session:
        return await processor.process(session, event)


@router.post("/kiwify-webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def kiwify_webhook(request: Request):
    settings = get_settings()
    body = await request.body()
    payload = _load_json(body)

    if not kiwify.authenticate(
        request.headers, request.query_params, payload or {}, body,
        settings.kiwify_webhook_token,
    ):
        logger.warning("Kiwify webhook rejected: bad token")
        raise Unauthorized()

    if payload is None:
        return WebhookAck(ignored=True, reason="invalid_payload")

    try:
        return await _process(kiwify.parse_event(payload))
    except Exception:
        logger.exception("Kiwify webhook processing failed")
        return WebhookAck(error=True)


@router.post("/abacate-webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def abacate_webhook(request: Request):
    settings = get_settings()
    if not abacate.authenticate(request.query_params, settings.abacatepay_webhook_secret):
        logger.warning("AbacatePay webhook rejected: bad secret")
        raise Unauthorized()

    payload = _load_json(await request.body())
    if payload is None:
        return WebhookAck(ignored=True, reason="invalid_payload")

    try:
        return await _process(abacate.parse_event(payload))
    except Exception:
        logger.exception("AbacatePay webhook processing failed")
        return WebhookAck(error=True)
