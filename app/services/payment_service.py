import logging
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PaymentSignal(BaseModel):
    succeeded: bool
    reference: Optional[str] = None


class SimulatedPaymentGateway:
    """
    Stand-in for the card/transfer provider.
    Every charge succeeds and gets a random reference.
    """

    def charge(self, buyer_id: int, amount: float) -> PaymentSignal:
        reference = f"sim_{uuid4().hex[:16]}"
        logger.info(f"Simulated payment for buyer {buyer_id}: amount {amount}, ref {reference}")
        return PaymentSignal(succeeded=True, reference=reference)


payment_gateway = SimulatedPaymentGateway()


def get_payment_gateway() -> SimulatedPaymentGateway:
    return payment_gateway
