from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Protocol

from ..core.scope import TenantScope
from .model import FeeInstallment, InstallmentPayment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentRecorded:
    scope: TenantScope
    payment: InstallmentPayment
    installment: FeeInstallment


class PaymentRecordedListener(Protocol):
    def on_payment_recorded(self, event: PaymentRecorded) -> None:
        raise NotImplementedError


class PaymentEventDispatcher:
    """Fan-out for committed payments. A failing listener never affects the payment or other listeners."""

    def __init__(self, listeners: List[PaymentRecordedListener] | None = None):
        self._listeners: List[PaymentRecordedListener] = list(listeners or [])

    def subscribe(self, listener: PaymentRecordedListener) -> None:
        self._listeners.append(listener)

    def publish(self, event: PaymentRecorded) -> None:
        for listener in self._listeners:
            try:
                listener.on_payment_recorded(event)
            except Exception:
                logger.exception(
                    "Payment listener %s failed for payment %s",
                    type(listener).__name__,
                    event.payment.payment_id,
                )
