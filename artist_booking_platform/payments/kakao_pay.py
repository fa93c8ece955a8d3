"""Kakao Pay adapter.

In sandbox mode no request leaves the process: authorizations succeed with a
``KP-<milliseconds>`` transaction id and voids always succeed.
"""

import logging
import time
from decimal import Decimal

import httpx

from ..models.booking import Booking
from ..utils.exceptions import PaymentServiceError
from .base import AuthorizationResult, PaymentProvider, VoidResult

logger = logging.getLogger(__name__)


class KakaoPayProvider(PaymentProvider):
    """Kakao Pay single-payment API client."""

    def __init__(
        self,
        base_url: str = "https://open-api.kakaopay.com",
        admin_key: str | None = None,
        cid: str = "TC0ONETIME",
        sandbox: bool = True,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.admin_key = admin_key
        self.cid = cid
        self.sandbox = sandbox
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "kakao_pay"

    async def authorize(self, booking: Booking) -> AuthorizationResult:
        logger.info(f"Authorizing payment via Kakao Pay for booking {booking.id}")

        if self.sandbox:
            return AuthorizationResult(
                success=True,
                provider=self.name,
                transaction_id=f"KP-{int(time.time() * 1000)}",
                raw_response={"sandbox": True},
            )

        payload = {
            "cid": self.cid,
            "partner_order_id": booking.booking_number,
            "partner_user_id": str(booking.customer_id),
            "item_name": booking.service_type[:100],
            "quantity": 1,
            "total_amount": _krw(booking.total_amount),
            "tax_free_amount": 0,
        }
        data = await self._post("/online/v1/payment/ready", payload)

        transaction_id = data.get("tid")
        if not transaction_id:
            return AuthorizationResult(
                success=False,
                provider=self.name,
                error_message=data.get("error_message") or "Kakao Pay returned no transaction id",
                raw_response=data,
            )

        return AuthorizationResult(
            success=True,
            provider=self.name,
            transaction_id=transaction_id,
            raw_response=data,
        )

    async def void(self, booking: Booking, transaction_id: str) -> VoidResult:
        logger.info(f"Voiding Kakao Pay transaction {transaction_id} for booking {booking.id}")

        if self.sandbox:
            return VoidResult(success=True, transaction_id=transaction_id, raw_response={"sandbox": True})

        payload = {
            "cid": self.cid,
            "tid": transaction_id,
            "cancel_amount": _krw(booking.total_amount),
            "cancel_tax_free_amount": 0,
        }
        data = await self._post("/online/v1/payment/cancel", payload)

        return VoidResult(
            success=data.get("status") in ("CANCEL_PAYMENT", "PART_CANCEL_PAYMENT"),
            transaction_id=transaction_id,
            error_message=data.get("error_message"),
            raw_response=data,
        )

    async def _post(self, path: str, payload: dict) -> dict:
        if not self.admin_key:
            raise PaymentServiceError("Kakao Pay admin key not configured")

        headers = {
            "Authorization": f"SECRET_KEY {self.admin_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._client is not None:
                response = await self._client.post(
                    f"{self.base_url}{path}", json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        f"{self.base_url}{path}", json=payload, headers=headers, timeout=self.timeout
                    )
        except httpx.HTTPError as e:
            raise PaymentServiceError(f"Kakao Pay request failed: {e}") from e

        if response.status_code >= 500:
            raise PaymentServiceError(
                f"Kakao Pay returned {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        if response.status_code >= 400:
            data.setdefault("error_message", f"Kakao Pay returned {response.status_code}")
        return data


def _krw(amount: Decimal) -> int:
    # KRW has no minor unit
    return int(Decimal(amount).to_integral_value())
