"""Canonical payment event shared by every provider adapter.

Adapters translate a provider's native payload into a ``CanonicalEvent``;
nothing downstream of an adapter reads the raw payload except to store it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EventKind(str, Enum):
    """Commercial status vocabulary; values are what ``status_pagamento`` stores."""

    PURCHASE_APPROVED = "compra_aprovada"
    SUBSCRIPTION_RENEWED = "assinatura_renovada"
    PIX_GENERATED = "pix_gerado"
    REFUND = "reembolso"
    SUBSCRIPTION_CANCELED = "assinatura_cancelada"
    SUBSCRIPTION_LATE = "assinatura_atrasada"
    BILLET_GENERATED = "boleto_gerado"
    PURCHASE_REFUSED = "compra_recusada"
    CHARGEBACK = "chargeback"
    OTHER = "desconhecido"


# Events that confirm payment and move a session to paid_waiting_account.
ACTIVE_KINDS: frozenset[EventKind] = frozenset({
    EventKind.PURCHASE_APPROVED,
    EventKind.SUBSCRIPTION_RENEWED,
    EventKind.PIX_GENERATED,
})

# Events that close an unpaid session; a later confirmed payment still reopens it.
CLOSING_KINDS: frozenset[EventKind] = frozenset({
    EventKind.PURCHASE_REFUSED,
    EventKind.SUBSCRIPTION_CANCELED,
})


@dataclass(frozen=True)
class SessionHint:
    """Identifiers a payment event offers for finding its session."""

    bill_id: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not (self.bill_id or self.email or self.tax_id)


@dataclass
class CanonicalEvent:
    provider: str
    event_type: str
    kind: EventKind
    event_id: Optional[str] = None
    hint: SessionHint = field(default_factory=SessionHint)
    plan_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def status_pagamento(self) -> str:
        if self.kind is EventKind.OTHER:
            return self.event_type or EventKind.OTHER.value
        return self.kind.value

    @property
    def is_active(self) -> bool:
        return self.kind in ACTIVE_KINDS

    @property
    def is_closing(self) -> bool:
        return self.kind in CLOSING_KINDS
