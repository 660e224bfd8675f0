"""
storefront/integrations/payment.py - Payment-processor bridge and redirect callback contract.

The processor session is created by a remote, trusted function (the deployed
create-checkout-session function). This module calls it over HTTP with `requests`
and interprets the responses. It also builds and parses the two redirect URLs the
processor sends the shopper back to.
"""
import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs, urlsplit

import requests

from storefront.config import settings
from storefront.core.errors import InvalidPaymentSession

logger = logging.getLogger("storefront.payment")

# Placeholder the processor substitutes with its own session id on redirect.
SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"
SIMULATED_PREFIX = "SIMULATED-"


def build_success_url(order_id: str, site_url: Optional[str] = None) -> str:
    base = (site_url or settings.site_url).rstrip("/")
    return f"{base}/payment-success?session_id={SESSION_PLACEHOLDER}&order_id={order_id}"


def build_cancel_url(site_url: Optional[str] = None) -> str:
    base = (site_url or settings.site_url).rstrip("/")
    return f"{base}/checkout?cancelled=true"


def _query(source: Union[str, Mapping[str, Any]]) -> Dict[str, str]:
    if isinstance(source, Mapping):
        return {k: str(v) for k, v in source.items() if v is not None}
    text = source or ""
    # hash-routed SPAs put the query after the fragment: /#/payment-success?...
    if "?" in text:
        text = text.rsplit("?", 1)[1]
    elif "://" in text:
        text = urlsplit(text).query
    return {k: v[0] for k, v in parse_qs(text).items() if v}


def parse_success_callback(source: Union[str, Mapping[str, Any]]) -> Tuple[str, str]:
    """
    Returns (session_id, order_id) from the success redirect.
    Fails fast with InvalidPaymentSession when either parameter is missing.
    """
    params = _query(source)
    session_id = (params.get("session_id") or "").strip()
    order_id = (params.get("order_id") or "").strip()
    if not session_id or not order_id or session_id == SESSION_PLACEHOLDER:
        raise InvalidPaymentSession()
    return session_id, order_id


def parse_cancel_callback(source: Union[str, Mapping[str, Any]]) -> bool:
    return (_query(source).get("cancelled") or "").lower() == "true"


class PaymentBridge:
    """
    HTTP client for the payment-session function.

    create:   POST {url}  {orderId, amount, currency, userId, successUrl, cancelUrl} -> {sessionId, url}
    retrieve: GET  {url}?session_id=...  -> {sessionId, orderId, paymentStatus}
    Methods return (ok, result); on failure result carries {"error": ...}.
    """

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.url = settings.payment_function_url if url is None else url
        self.api_key = settings.payment_function_key if api_key is None else api_key
        self.timeout = timeout or settings.payment_timeout
        self.http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def create_payment_session(
        self,
        order_id: str,
        amount_minor_units: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        user_id: Optional[str] = None,
    ) -> Tuple[bool, Dict[str, Any]]:
        # If the function is not configured, simulate a session for development.
        if not self.url:
            logger.warning("Payment function URL not set - simulating checkout session for order %s", order_id)
            session_id = f"{SIMULATED_PREFIX}{order_id}"
            return True, {
                "session_id": session_id,
                "redirect_url": success_url.replace(SESSION_PLACEHOLDER, session_id),
            }

        body = {
            "orderId": order_id,
            "amount": int(amount_minor_units),
            "currency": currency.lower(),
            "userId": user_id,
            "successUrl": success_url,
            "cancelUrl": cancel_url,
        }
        try:
            resp = self.http.post(self.url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Payment function unreachable: %s", e)
            return False, {"error": str(e)}

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = data.get("error") or data.get("message") or f"HTTP {resp.status_code}"
            logger.warning("Payment function failed: %s %s", resp.status_code, message)
            return False, {"error": message, "status_code": resp.status_code}

        session_id = data.get("sessionId") or data.get("session_id")
        if not session_id:
            return False, {"error": "Payment function returned no session id"}
        return True, {"session_id": session_id, "redirect_url": data.get("url") or data.get("redirectUrl") or ""}

    def retrieve_payment_session(self, session_id: str) -> Tuple[bool, Dict[str, Any]]:
        if session_id.startswith(SIMULATED_PREFIX) and not self.url:
            return True, {"session_id": session_id, "order_id": session_id[len(SIMULATED_PREFIX):], "paid": True}

        if not self.url:
            return False, {"error": "Payment function URL not configured"}
        try:
            resp = self.http.get(self.url, params={"session_id": session_id},
                                 headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Payment session lookup failed for %s: %s", session_id, e)
            return False, {"error": str(e)}

        status_val = (data.get("paymentStatus") or data.get("payment_status") or "").lower()
        return True, {
            "session_id": data.get("sessionId") or session_id,
            "order_id": data.get("orderId") or data.get("clientReferenceId") or (data.get("metadata") or {}).get("orderId"),
            "paid": status_val == "paid",
        }
