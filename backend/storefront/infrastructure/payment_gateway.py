"""Payment Gateway Adapters — Stripe charges and an in-process fake.

Invariants:
    - Exactly one processor call per charge(); no retries here or upstream
    - Definite refusals -> PaymentDeclinedError
    - Lost/unclear outcomes (connection drop, 5xx, pending) ->
      PaymentGatewayUnavailableError(ambiguous=True)
    - Requests rejected before reaching the card network ->
      PaymentGatewayUnavailableError(ambiguous=False)
    - idempotency_key is forwarded so the processor itself dedupes replays

Design Decisions:
    - The Stripe SDK is synchronous; calls run in a worker thread and the
      caller bounds them with asyncio.wait_for
"""

import asyncio
import logging
from collections import deque
from uuid import uuid4

import stripe

from storefront.core.domain_types import ChargeReceipt
from storefront.core.errors import (
    PaymentDeclinedError, PaymentGatewayUnavailableError, StorefrontError,
)

logger = logging.getLogger(__name__)


class StripePaymentGateway:
    """Implements core.boundary_protocols.PaymentGateway on stripe.Charge."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    async def charge(
        self,
        amount: int,
        currency: str,
        payment_token: str,
        idempotency_key: str,
    ) -> ChargeReceipt:
        try:
            charge = await asyncio.to_thread(
                self._create_charge, amount, currency, payment_token, idempotency_key,
            )
        except stripe.CardError as e:
            raise PaymentDeclinedError(
                e.user_message or "Your card was declined",
                decline_code=e.code,
            )
        except stripe.InvalidRequestError as e:
            raise PaymentDeclinedError(
                e.user_message or "Payment details were rejected",
                decline_code=e.code,
            )
        except (stripe.AuthenticationError, stripe.PermissionError,
                stripe.RateLimitError) as e:
            logger.error(f"Stripe refused request: {type(e).__name__}")
            raise PaymentGatewayUnavailableError(
                "Payment processor rejected the request", ambiguous=False,
            )
        except stripe.APIConnectionError as e:
            logger.error(f"Stripe connection error: {e}")
            raise PaymentGatewayUnavailableError(
                "Lost connection to the payment processor", ambiguous=True,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe API error: {e}")
            raise PaymentGatewayUnavailableError(
                "Payment processor error", ambiguous=True,
            )
        return self._receipt_from(charge, amount)

    def _create_charge(
        self, amount: int, currency: str, payment_token: str, idempotency_key: str,
    ):
        return stripe.Charge.create(
            api_key=self.api_key,
            amount=amount,
            currency=currency.lower(),
            source=payment_token,
            idempotency_key=idempotency_key,
        )

    @staticmethod
    def _receipt_from(charge, requested_amount: int) -> ChargeReceipt:
        status = getattr(charge, "status", None)
        if status == "failed":
            raise PaymentDeclinedError(
                getattr(charge, "failure_message", None) or "Your payment was declined",
                decline_code=getattr(charge, "failure_code", None),
            )
        if status != "succeeded":
            raise PaymentGatewayUnavailableError(
                f"Charge {charge.id} is {status}", ambiguous=True,
            )
        return ChargeReceipt(
            charge_id=charge.id,
            amount=int(getattr(charge, "amount", requested_amount)),
        )


class FakePaymentGateway:
    """In-process processor for local development and tests.

    Replays a receipt for a repeated idempotency key, like Stripe does.
    Queue failures with fail_next(); set delay_seconds to simulate a hang.
    Only the most recent `history` calls and receipts are kept.
    """

    def __init__(self, delay_seconds: float = 0.0, history: int = 1000):
        self.delay_seconds = delay_seconds
        self.history = history
        self.calls: list[dict] = []
        self._receipts: dict[str, ChargeReceipt] = {}
        self._scripted: deque[StorefrontError] = deque()

    def fail_next(self, error: StorefrontError) -> None:
        self._scripted.append(error)

    def decline_next(self, message: str = "Your card was declined") -> None:
        self.fail_next(PaymentDeclinedError(message, decline_code="card_declined"))

    @property
    def successful_charges(self) -> list[ChargeReceipt]:
        return list(self._receipts.values())

    async def charge(
        self,
        amount: int,
        currency: str,
        payment_token: str,
        idempotency_key: str,
    ) -> ChargeReceipt:
        self.calls.append({
            "amount": amount,
            "currency": currency,
            "payment_token": payment_token,
            "idempotency_key": idempotency_key,
        })
        del self.calls[:-self.history]
        if idempotency_key in self._receipts:
            return self._receipts[idempotency_key]
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self._scripted:
            raise self._scripted.popleft()
        receipt = ChargeReceipt(charge_id=f"ch_fake_{uuid4().hex[:24]}", amount=amount)
        self._receipts[idempotency_key] = receipt
        while len(self._receipts) > self.history:
            del self._receipts[next(iter(self._receipts))]
        return receipt
