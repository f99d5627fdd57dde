import pytest
import requests

from casepay.config import Settings
from casepay.exceptions import GatewayUnavailable, InvalidAmount, InvalidCredentials, ValidationError
from casepay.services.order_gateway import (
    OrderGateway, RazorpayOrderGateway, SandboxOrderGateway, build_order_gateway,
)


class FakeResponse:
    def __init__(self, status_code, body=None, invalid_json=False):
        self.status_code = status_code
        self._body = body
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Stands in for requests.Session; replays one response or raises."""

    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc:
            raise self.exc
        return self.response


def make_gateway(session, key_id="rzp_test_key", key_secret="secret"):
    return RazorpayOrderGateway(
        key_id=key_id,
        key_secret=key_secret,
        api_base="https://api.razorpay.com/v1/",
        timeout=5.0,
        supported_currencies=["INR"],
        session=session,
    )


def test_success_posts_order_and_returns_ref():
    session = FakeSession(FakeResponse(200, {"id": "order_ABC123", "amount": 50000, "status": "created"}))
    gateway = make_gateway(session)

    order = gateway.create_order(50000, "INR", "TXN-1", notes={"case_id": "c1"})

    assert order.gateway_order_ref == "order_ABC123"
    assert order.raw["status"] == "created"
    url, kwargs = session.calls[0]
    assert url == "https://api.razorpay.com/v1/orders"
    assert kwargs["json"] == {"amount": 50000, "currency": "INR", "receipt": "TXN-1", "notes": {"case_id": "c1"}}
    assert kwargs["auth"] == ("rzp_test_key", "secret")
    assert kwargs["timeout"] == 5.0


def test_timeout_is_retryable_unavailable():
    gateway = make_gateway(FakeSession(exc=requests.Timeout("read timed out")))
    with pytest.raises(GatewayUnavailable) as exc_info:
        gateway.create_order(50000, "INR", "TXN-1")
    assert exc_info.value.retryable is True


def test_connection_error_is_unavailable():
    gateway = make_gateway(FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(GatewayUnavailable):
        gateway.create_order(50000, "INR", "TXN-1")


def test_401_is_invalid_credentials():
    gateway = make_gateway(FakeSession(FakeResponse(401, {"error": {"code": "BAD_REQUEST_ERROR"}})))
    with pytest.raises(InvalidCredentials):
        gateway.create_order(50000, "INR", "TXN-1")


def test_missing_keys_fail_before_any_request():
    session = FakeSession(FakeResponse(200, {"id": "order_X"}))
    gateway = make_gateway(session, key_secret="")
    with pytest.raises(InvalidCredentials):
        gateway.create_order(50000, "INR", "TXN-1")
    assert session.calls == []


def test_400_on_amount_field_is_invalid_amount():
    body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "Order amount less than minimum", "field": "amount"}}
    gateway = make_gateway(FakeSession(FakeResponse(400, body)))
    with pytest.raises(InvalidAmount, match="minimum"):
        gateway.create_order(50, "INR", "TXN-1")


def test_400_on_other_field_is_validation_error():
    body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "receipt too long", "field": "receipt"}}
    gateway = make_gateway(FakeSession(FakeResponse(400, body)))
    with pytest.raises(ValidationError) as exc_info:
        gateway.create_order(50000, "INR", "TXN-1")
    assert not isinstance(exc_info.value, InvalidAmount)


@pytest.mark.parametrize("response", [
    FakeResponse(500, {"error": {}}),
    FakeResponse(200, invalid_json=True),
    FakeResponse(200, {"entity": "order"}),
    FakeResponse(200, ["not", "a", "dict"]),
])
def test_server_errors_and_unreadable_bodies_are_unavailable(response):
    gateway = make_gateway(FakeSession(response))
    with pytest.raises(GatewayUnavailable):
        gateway.create_order(50000, "INR", "TXN-1")


@pytest.mark.parametrize("amount", [0, -100, 10.5, "500", True, None])
def test_bad_amount_rejected_locally(amount):
    session = FakeSession(FakeResponse(200, {"id": "order_X"}))
    with pytest.raises(InvalidAmount):
        make_gateway(session).create_order(amount, "INR", "TXN-1")
    assert session.calls == []


@pytest.mark.parametrize("currency", ["USD", "inr", "", "RUPEES"])
def test_unsupported_currency_rejected_locally(currency):
    session = FakeSession(FakeResponse(200, {"id": "order_X"}))
    with pytest.raises(ValidationError):
        make_gateway(session).create_order(50000, currency, "TXN-1")
    assert session.calls == []


def test_receipt_length_is_bounded():
    with pytest.raises(ValidationError):
        SandboxOrderGateway(["INR"]).create_order(50000, "INR", "T" * 41)


def test_sandbox_issues_unique_order_refs():
    gateway = SandboxOrderGateway(["INR"])
    first = gateway.create_order(50000, "INR", "TXN-1")
    second = gateway.create_order(50000, "INR", "TXN-2")
    assert first.gateway_order_ref.startswith("order_")
    assert first.gateway_order_ref != second.gateway_order_ref
    assert first.raw["receipt"] == "TXN-1"


def test_build_order_gateway_by_mode():
    assert isinstance(build_order_gateway(Settings(_env_file=None, GATEWAY_MODE="sandbox")), SandboxOrderGateway)
    assert isinstance(build_order_gateway(Settings(_env_file=None, GATEWAY_MODE="razorpay")), RazorpayOrderGateway)
    with pytest.raises(ValueError):
        build_order_gateway(Settings(_env_file=None, GATEWAY_MODE="paypal"))


def test_base_gateway_cannot_be_instantiated():
    with pytest.raises(TypeError):
        OrderGateway(["INR"])
