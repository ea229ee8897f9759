"""Webhook acknowledgement body."""

from typing import Optional

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Always ``received: true``; the flags tell what happened, for the provider's logs."""

    received: bool = True
    duplicate: Optional[bool] = None
    ignored: Optional[bool] = None
    reason: Optional[str] = None
    processed: Optional[bool] = None
    status_updated: Optional[bool] = None
    event: Optional[str] = None
    error: Optional[bool] = None
