import threading

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from casepay.config import Settings, get_settings
from casepay.database import create_db_engine, get_db, init_db
from casepay.dependencies import get_dispatcher, get_order_gateway
from casepay.exceptions import GatewayUnavailable
from casepay.main import app
from casepay.models.case import Case
from casepay.services.access import Actor
from casepay.services.case_service import CaseService
from casepay.services.notification_service import NotificationDispatcher
from casepay.services.order_gateway import OrderGateway, SandboxOrderGateway
from casepay.services.payment_service import PaymentService
from casepay.services.signature_verifier import SignatureVerifier
from casepay.utils import rate_limiter

TEST_SECRET = "test_secret_for_hmac"
OWNER = Actor(user_id="user-1")
OTHER_USER = Actor(user_id="user-2")
ADMIN = Actor(user_id="admin-1", role="admin")


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every dispatched message for assertions."""

    def __init__(self):
        self.messages = []
        self._lock = threading.Lock()
        super().__init__(subscribers=[self._record])

    def _record(self, message):
        with self._lock:
            self.messages.append(message)


class UnavailableGateway(OrderGateway):
    name = "unavailable"

    def __init__(self):
        super().__init__(["INR"])
        self.calls = 0

    def create_order(self, amount, currency, local_receipt_id, notes=None):
        self._check(amount, currency, local_receipt_id)
        self.calls += 1
        raise GatewayUnavailable("Payment gateway timed out, please retry")


def sign(order_ref, payment_ref):
    return SignatureVerifier.compute(order_ref, payment_ref, TEST_SECRET)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        GATEWAY_MODE="sandbox",
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_KEY_SECRET=TEST_SECRET,
        CASE_NUMBER_PREFIX="CASE",
    )


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'casepay-test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def gateway(settings):
    return SandboxOrderGateway(settings.SUPPORTED_CURRENCIES)


@pytest.fixture
def case_service(db, settings):
    return CaseService(db, settings)


@pytest.fixture
def payment_service(db, gateway, settings, dispatcher):
    return PaymentService(db, gateway, settings, dispatcher)


@pytest.fixture
def case(case_service) -> Case:
    return case_service.create_case(
        OWNER, title="Ramesh v. Suresh", plaintiffs="Ramesh", defendants="Suresh", case_type="civil"
    )


@pytest.fixture
def pending_payment(payment_service, case):
    return payment_service.create_order(case.id, OWNER)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def client(session_factory, settings, gateway, dispatcher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_order_gateway] = lambda: gateway
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def headers_for(actor: Actor) -> dict:
    return {"x-user-id": actor.user_id, "x-user-role": actor.role}
