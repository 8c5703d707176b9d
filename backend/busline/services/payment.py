"""
Payment collaborators.

The engine never processes payments itself; it asks a gateway to charge
the aggregate amount and acts on the decision.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, List, Union

from ..models.enums import PaymentDecision

logger = logging.getLogger(__name__)

ChargeCallback = Callable[[Decimal], Union[bool, PaymentDecision, Awaitable[Union[bool, PaymentDecision]]]]


class PaymentGateway:
    """Charges an amount and reports ACCEPTED or DECLINED."""

    async def charge(self, amount: Decimal) -> PaymentDecision:
        raise NotImplementedError


class StaticPaymentGateway(PaymentGateway):
    """Gateway returning a fixed decision; records every charge."""

    def __init__(self, decision: PaymentDecision = PaymentDecision.ACCEPTED):
        self.decision = decision
        self.charges: List[Decimal] = []

    async def charge(self, amount: Decimal) -> PaymentDecision:
        self.charges.append(amount)
        logger.info(f"Payment of {amount:.2f}: {self.decision.value}")
        return self.decision


class CallbackPaymentGateway(PaymentGateway):
    """
    Gateway delegating the decision to a callable, such as a confirmation
    prompt. The callable may return a bool or a PaymentDecision, and may be
    a coroutine function.
    """

    def __init__(self, callback: ChargeCallback):
        self.callback = callback

    async def charge(self, amount: Decimal) -> PaymentDecision:
        result = self.callback(amount)
        if asyncio.iscoroutine(result):
            result = await result
        if isinstance(result, PaymentDecision):
            decision = result
        else:
            decision = PaymentDecision.ACCEPTED if result else PaymentDecision.DECLINED
        logger.info(f"Payment of {amount:.2f}: {decision.value}")
        return decision
