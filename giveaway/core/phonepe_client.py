# giveaway/core/phonepe_client.py
"""
PhonePe Checkout V2 client.

Responsibilities:
  - OAuth client-credentials token, cached until 5 minutes before expiry
  - create a PG_CHECKOUT payment and return the redirect URL
  - fetch the status of a payment by our merchant order id
  - sanitise the buyer mobile number sent along as metadata
  - turn status responses and webhook bodies into a PaymentSignal

PHONEPE_BASE_URL includes the environment prefix, e.g.:

    sandbox:    https://api-preprod.phonepe.com/apis/pg-sandbox
    production: https://api.phonepe.com/apis/pg

Usage in services:

    from giveaway.core.phonepe_client import PhonePeClient

    client = PhonePeClient()
    checkout = client.create_payment("TXN_...", amount_paise=59900,
                                     redirect_url="https://.../payment/callback")
    signal = client.check_status("TXN_...")
"""
import base64
import hashlib
import hmac
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from giveaway.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

STATE_COMPLETED = "COMPLETED"
STATE_FAILED = "FAILED"
STATE_PENDING = "PENDING"

# Legacy (V1) callback codes
_LEGACY_SUCCESS_CODES = {"PAYMENT_SUCCESS"}
_LEGACY_FAILURE_CODES = {"PAYMENT_ERROR", "PAYMENT_DECLINED", "TIMED_OUT"}


class PaymentGatewayError(RuntimeError):
    """The gateway could not be reached or returned an unusable response."""


@dataclass(frozen=True)
class PaymentSignal:
    """Outcome of a payment as reported by the gateway."""

    merchant_transaction_id: str | None
    state: str
    transaction_id: str | None = None

    @property
    def success(self) -> bool:
        return self.state == STATE_COMPLETED

    @property
    def failed(self) -> bool:
        return self.state == STATE_FAILED


def signal_from_status(
    data: dict[str, Any],
    merchant_transaction_id: str | None = None,
) -> PaymentSignal:
    """
    Build a signal from a V2 order-status body (or a V2 webhook payload).

    The gateway transaction id is taken from the first completed attempt
    in paymentDetails, falling back to the last attempt listed.
    """
    state = str(data.get("state") or STATE_PENDING).upper()

    transaction_id: str | None = None
    details = data.get("paymentDetails") or []
    for attempt in details:
        if str(attempt.get("state", "")).upper() == STATE_COMPLETED:
            transaction_id = attempt.get("transactionId")
            break
    if transaction_id is None and details:
        transaction_id = details[-1].get("transactionId")

    return PaymentSignal(
        merchant_transaction_id=merchant_transaction_id or data.get("merchantOrderId"),
        state=state,
        transaction_id=transaction_id,
    )


def parse_webhook(body: dict[str, Any]) -> PaymentSignal:
    """
    Parse a webhook body.

    Supported shapes:
      - V2:     {"event": "...", "payload": {"merchantOrderId", "state", ...}}
      - legacy: {"response": "<base64 JSON>"} with "code" PAYMENT_SUCCESS etc.

    Raises:
        ValueError: if the body matches neither shape.
    """
    payload = body.get("payload")
    if isinstance(payload, dict):
        return signal_from_status(payload)

    encoded = body.get("response")
    if isinstance(encoded, str):
        decoded = json.loads(base64.b64decode(encoded))
        data = decoded.get("data") or decoded
        code = decoded.get("code") or data.get("responseCode")
        if code in _LEGACY_SUCCESS_CODES:
            state = STATE_COMPLETED
        elif code in _LEGACY_FAILURE_CODES:
            state = STATE_FAILED
        else:
            state = STATE_PENDING
        return PaymentSignal(
            merchant_transaction_id=data.get("merchantTransactionId"),
            state=state,
            transaction_id=data.get("transactionId"),
        )

    raise ValueError("Unrecognised payment webhook body")


def sanitize_mobile_number(value: str | None) -> str | None:
    """
    Last 10 digits of a phone number, or None when fewer than 10 digits remain.

    "+91 98765-43210" -> "9876543210"
    """
    digits = re.sub(r"\D", "", value or "")
    if len(digits) < 10:
        return None
    return digits[-10:]


def verify_webhook_authorization(
    header: str | None,
    username: str | None,
    password: str | None,
) -> bool:
    """
    Check the V2 webhook Authorization header: sha256("<user>:<password>").

    Verification is skipped when no webhook credentials are configured.
    """
    if not username or not password:
        return True

    expected = hashlib.sha256(f"{username}:{password}".encode()).hexdigest()
    provided = (header or "").strip()
    if provided.upper().startswith("SHA256 "):
        provided = provided[7:].strip()
    return hmac.compare_digest(expected, provided.lower())


class PhonePeClient:
    """
    Thin synchronous wrapper over the PhonePe Checkout V2 HTTP API.

    Configuration is validated lazily (on the first call), so the app can
    start without PhonePe credentials.
    """

    TOKEN_SAFETY_SECONDS = 300

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client
        self._token: str | None = None
        self._token_expires_at: float = 0.0

    # -------- configuration --------

    def validate_config(self) -> None:
        """
        Raises:
            PaymentGatewayError: if required PHONEPE_* settings are missing.
        """
        required = {
            "PHONEPE_MERCHANT_ID": self.settings.PHONEPE_MERCHANT_ID,
            "PHONEPE_CLIENT_ID": self.settings.PHONEPE_CLIENT_ID,
            "PHONEPE_CLIENT_SECRET": self.settings.PHONEPE_CLIENT_SECRET,
            "PHONEPE_BASE_URL": self.settings.PHONEPE_BASE_URL,
        }
        missing = [name for name, value in required.items() if not (value or "").strip()]
        if missing:
            raise PaymentGatewayError(
                f"PhonePe configuration missing: {', '.join(missing)}"
            )

    def _http(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(
                base_url=self.settings.PHONEPE_BASE_URL.rstrip("/"),
                timeout=self.settings.PHONEPE_TIMEOUT_SECONDS,
            )
        return self._http_client

    # -------- auth --------

    def fetch_access_token(self) -> str:
        self.validate_config()
        try:
            response = self._http().post(
                "/v1/oauth/token",
                data={
                    "client_id": self.settings.PHONEPE_CLIENT_ID,
                    "client_secret": self.settings.PHONEPE_CLIENT_SECRET,
                    "client_version": self.settings.PHONEPE_CLIENT_VERSION,
                    "grant_type": "client_credentials",
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                f"PhonePe token request failed ({exc.response.status_code}): "
                f"{exc.response.text}"
            )
            raise PaymentGatewayError("Failed to fetch PhonePe access token") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"PhonePe token request failed: {exc}")
            raise PaymentGatewayError("Failed to fetch PhonePe access token") from exc

        token = body.get("access_token")
        if not token:
            raise PaymentGatewayError("No access_token returned from PhonePe")

        expires_in = float(body.get("expires_in") or 0)
        self._token = token
        self._token_expires_at = time.time() + expires_in - self.TOKEN_SAFETY_SECONDS
        logger.info("PhonePe access token fetched")
        return token

    def get_access_token(self) -> str:
        if self._token and time.time() < self._token_expires_at:
            return self._token
        return self.fetch_access_token()

    def clear_token_cache(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"O-Bearer {self.get_access_token()}"}

    # -------- payments --------

    def create_payment(
        self,
        merchant_order_id: str,
        amount_paise: int,
        redirect_url: str,
        expire_after_seconds: int = 1200,
        mobile_number: str | None = None,
    ) -> dict[str, Any]:
        """
        Create a PG_CHECKOUT payment.

        Returns:
            {"redirect_url", "gateway_order_id", "state", "expire_at"}

        Raises:
            PaymentGatewayError: on transport errors or a missing redirect URL.
        """
        self.validate_config()
        payload = {
            "merchantOrderId": merchant_order_id,
            "amount": amount_paise,
            "expireAfter": expire_after_seconds,
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "merchantUrls": {"redirectUrl": redirect_url},
            },
        }
        mobile = sanitize_mobile_number(mobile_number)
        if mobile:
            payload["metaInfo"] = {"udf1": mobile}
        try:
            response = self._http().post(
                "/checkout/v2/pay",
                json=payload,
                headers=self._auth_headers(),
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"PhonePe pay request failed for {merchant_order_id}: {exc}")
            raise PaymentGatewayError("PhonePe payment request failed") from exc

        redirect = (body.get("redirectUrl") or "").strip()
        if not redirect:
            raise PaymentGatewayError(
                f"PhonePe payment failed: {body.get('message') or 'no redirect URL'}"
            )

        logger.info(f"PhonePe checkout created for {merchant_order_id}")
        return {
            "redirect_url": redirect,
            "gateway_order_id": body.get("orderId"),
            "state": body.get("state"),
            "expire_at": body.get("expireAt"),
        }

    def check_status(self, merchant_order_id: str) -> PaymentSignal:
        """
        Raises:
            PaymentGatewayError: on transport errors or an unreadable body.
        """
        self.validate_config()
        try:
            response = self._http().get(
                f"/checkout/v2/order/{merchant_order_id}/status",
                headers={"Accept": "application/json", **self._auth_headers()},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"PhonePe status check failed for {merchant_order_id}: {exc}")
            raise PaymentGatewayError("PhonePe status check failed") from exc

        return signal_from_status(body, merchant_order_id)
