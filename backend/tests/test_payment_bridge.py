from unittest import mock

import pytest
import requests

from storefront.core.errors import InvalidPaymentSession
from storefront.integrations.payment import (
    PaymentBridge,
    build_cancel_url,
    build_success_url,
    parse_cancel_callback,
    parse_success_callback,
)


def _response(status_code=200, payload=None):
    resp = mock.Mock(status_code=status_code)
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code}")
    return resp


def test_callback_urls_follow_site_routing():
    assert build_success_url("o-1", "https://shop.example/#/") == (
        "https://shop.example/#/payment-success?session_id={CHECKOUT_SESSION_ID}&order_id=o-1"
    )
    assert build_cancel_url("https://shop.example") == "https://shop.example/checkout?cancelled=true"


@pytest.mark.parametrize("source", [
    "https://shop.example/#/payment-success?session_id=cs_1&order_id=o-1",
    "https://shop.example/payment-success?session_id=cs_1&order_id=o-1",
    {"session_id": "cs_1", "order_id": "o-1"},
])
def test_parse_success_callback(source):
    assert parse_success_callback(source) == ("cs_1", "o-1")


@pytest.mark.parametrize("source", [
    "https://shop.example/#/payment-success?order_id=o-1",
    "https://shop.example/#/payment-success?session_id=cs_1",
    "https://shop.example/#/payment-success?session_id={CHECKOUT_SESSION_ID}&order_id=o-1",
    {"session_id": None, "order_id": "o-1"},
    "",
])
def test_parse_success_callback_requires_both_parameters(source):
    with pytest.raises(InvalidPaymentSession):
        parse_success_callback(source)


def test_parse_cancel_callback():
    assert parse_cancel_callback("https://shop.example/#/checkout?cancelled=true") is True
    assert parse_cancel_callback({"cancelled": "TRUE"}) is True
    assert parse_cancel_callback("https://shop.example/#/checkout") is False


def test_create_session_posts_order_details():
    http = mock.Mock()
    http.post.return_value = _response(200, {"sessionId": "cs_live_1", "url": "https://pay.example/cs_live_1"})
    bridge = PaymentBridge(url="https://fn.example/create", api_key="k", timeout=5, session=http)

    ok, result = bridge.create_payment_session("o-1", 128300, "USD", "https://s", "https://c", user_id="alice")

    assert ok is True
    assert result == {"session_id": "cs_live_1", "redirect_url": "https://pay.example/cs_live_1"}
    _, kwargs = http.post.call_args
    assert kwargs["json"] == {
        "orderId": "o-1", "amount": 128300, "currency": "usd", "userId": "alice",
        "successUrl": "https://s", "cancelUrl": "https://c",
    }
    assert kwargs["headers"]["Authorization"] == "Bearer k"
    assert kwargs["timeout"] == 5


def test_create_session_http_error():
    http = mock.Mock()
    http.post.return_value = _response(500, {"error": "card processor down"})
    bridge = PaymentBridge(url="https://fn.example/create", api_key="", session=http)

    ok, result = bridge.create_payment_session("o-1", 100, "usd", "s", "c")
    assert ok is False
    assert result["error"] == "card processor down"
    assert result["status_code"] == 500


def test_create_session_network_error():
    http = mock.Mock()
    http.post.side_effect = requests.ConnectionError("refused")
    bridge = PaymentBridge(url="https://fn.example/create", api_key="", session=http)

    ok, result = bridge.create_payment_session("o-1", 100, "usd", "s", "c")
    assert ok is False
    assert "refused" in result["error"]


def test_create_session_without_session_id_fails():
    http = mock.Mock()
    http.post.return_value = _response(200, {"url": "https://pay.example"})
    bridge = PaymentBridge(url="https://fn.example/create", api_key="", session=http)
    ok, _ = bridge.create_payment_session("o-1", 100, "usd", "s", "c")
    assert ok is False


def test_unconfigured_bridge_simulates_session():
    http = mock.Mock()
    bridge = PaymentBridge(url="", api_key="", session=http)
    success = build_success_url("o-7", "https://shop.example/#")

    ok, result = bridge.create_payment_session("o-7", 100, "usd", success, "c")
    assert ok is True
    assert result["session_id"] == "SIMULATED-o-7"
    assert parse_success_callback(result["redirect_url"]) == ("SIMULATED-o-7", "o-7")
    http.post.assert_not_called()

    ok, info = bridge.retrieve_payment_session("SIMULATED-o-7")
    assert ok is True and info == {"session_id": "SIMULATED-o-7", "order_id": "o-7", "paid": True}


def test_retrieve_session_reads_payment_status():
    http = mock.Mock()
    http.get.return_value = _response(200, {"sessionId": "cs_1", "metadata": {"orderId": "o-1"},
                                            "paymentStatus": "PAID"})
    bridge = PaymentBridge(url="https://fn.example/create", api_key="", session=http)

    ok, info = bridge.retrieve_payment_session("cs_1")
    assert ok is True
    assert info == {"session_id": "cs_1", "order_id": "o-1", "paid": True}
    _, kwargs = http.get.call_args
    assert kwargs["params"] == {"session_id": "cs_1"}


def test_retrieve_session_failure():
    http = mock.Mock()
    http.get.return_value = _response(404, {"error": "missing"})
    bridge = PaymentBridge(url="https://fn.example/create", api_key="", session=http)
    ok, info = bridge.retrieve_payment_session("cs_1")
    assert ok is False and info["error"]
