import hashlib
import hmac
import time
import pytest
from typing import Any, Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient

from compass_billing.app_setup.factory import create_app
from compass_billing.config import Settings
from compass_billing.payments import stripe_client

TEST_API_KEY = "sk_test_123"
TEST_WEBHOOK_SECRET = "whsec_test_secret"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


# Pas de Redis pendant les tests
@pytest.fixture(autouse=True)
def _disable_rate_limiter(monkeypatch):
    monkeypatch.setenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(stripe_secret_key=TEST_API_KEY, stripe_webhook_secret=TEST_WEBHOOK_SECRET)


@pytest.fixture
def app(settings):
    return create_app(settings=settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


class FakeStripe:
    """
    Remplace les fonctions de compass_billing.payments.stripe_client.
    - Enregistre chaque appel (nom, kwargs)
    - errors[nom] = exception levée à l'appel
    - subscriptions[id] = metadata de l'abonnement
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.errors: Dict[str, Exception] = {}
        self.subscriptions: Dict[str, Dict[str, str]] = {}

    def _record(self, name: str, **kwargs):
        self.calls.append((name, kwargs))
        if name in self.errors:
            raise self.errors[name]

    def calls_to(self, name: str) -> List[Dict[str, Any]]:
        return [kw for n, kw in self.calls if n == name]

    def create_checkout_session(self, *, api_key: str, params: Dict[str, Any]):
        self._record("create_checkout_session", api_key=api_key, params=params)
        return {"id": "cs_test_123", "url": "https://checkout.stripe.com/c/pay/cs_test_123"}

    def get_checkout_session(self, session_id: str, *, api_key: str):
        self._record("get_checkout_session", session_id=session_id, api_key=api_key)
        return {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": "paid",
            "customer_details": {"email": "parent@example.com"},
            "metadata": {"package": "8-weeks"},
        }

    def create_setup_intent(self, *, api_key: str, metadata: Dict[str, Any], payment_method_types=None):
        self._record("create_setup_intent", api_key=api_key, metadata=metadata)
        return {"id": "seti_123", "client_secret": "seti_123_secret_abc"}

    def retrieve_subscription(self, subscription_id: str, *, api_key: str):
        self._record("retrieve_subscription", subscription_id=subscription_id, api_key=api_key)
        if subscription_id not in self.subscriptions:
            raise stripe_client.PaymentProviderError(f"No such subscription: '{subscription_id}'")
        return {"id": subscription_id, "metadata": dict(self.subscriptions[subscription_id])}

    def update_subscription_metadata(self, subscription_id: str, metadata, *, api_key: str, idempotency_key: Optional[str] = None):
        self._record(
            "update_subscription_metadata",
            subscription_id=subscription_id,
            metadata=metadata,
            api_key=api_key,
            idempotency_key=idempotency_key,
        )
        self.subscriptions[subscription_id] = dict(metadata)
        return {"id": subscription_id, "metadata": dict(metadata)}

    def cancel_subscription(self, subscription_id: str, *, api_key: str, idempotency_key: Optional[str] = None):
        self._record("cancel_subscription", subscription_id=subscription_id, api_key=api_key, idempotency_key=idempotency_key)
        return {"id": subscription_id, "status": "canceled"}

    def create_portal_session(self, *, api_key: str, customer_id: str, return_url: str):
        self._record("create_portal_session", api_key=api_key, customer_id=customer_id, return_url=return_url)
        return {"url": "https://billing.stripe.com/p/session/test_123"}


@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    for name in (
        "create_checkout_session",
        "get_checkout_session",
        "create_setup_intent",
        "retrieve_subscription",
        "update_subscription_metadata",
        "cancel_subscription",
        "create_portal_session",
    ):
        monkeypatch.setattr(stripe_client, name, getattr(fake, name))
    return fake


def _sign(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    # Même schéma que Stripe: HMAC-SHA256 de "<timestamp>.<payload>"
    t = timestamp or int(time.time())
    signed = f"{t}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={t},v1={signature}"


@pytest.fixture
def sign():
    """Fabrique un en-tête Stripe-Signature valide pour un payload donné."""
    return _sign
