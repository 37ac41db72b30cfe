import hashlib
import hmac
from datetime import datetime

import mongomock
import pytest
import requests
from fastapi.testclient import TestClient

from config import Settings
from database import create_document
from gateway import RazorpayGateway
from guards import CaptchaVerifier
from main import create_app

GATEWAY_SECRET = "test_secret"
ADMIN_KEY = "admin-key"


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data if data is not None else {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self._data


class FakeSession:
    """Replays queued responses (or raises queued exceptions); repeats the last one when drained."""

    def __init__(self, *responses):
        self.responses = list(responses) or [FakeResponse()]
        self.calls = []
        self.closed = False

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html):
        if self.fail:
            raise OSError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def verify(self):
        return True


def sign(order_id, payment_id, secret=GATEWAY_SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def settings():
    return Settings(
        hcaptcha_secret="captcha-secret",
        admin_api_key=ADMIN_KEY,
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=GATEWAY_SECRET,
        admin_notify_emails=["admin@sumansi.in"],
        frontend_url="https://shop.example",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["sumansi_test"]


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def captcha_session():
    return FakeSession(FakeResponse(200, {"success": True}))


@pytest.fixture
def gateway_session():
    return FakeSession(FakeResponse(200, {"id": "order_rzp_1", "amount": 49900, "currency": "INR"}))


@pytest.fixture
def app(settings, db, mailer, captcha_session, gateway_session):
    return create_app(
        settings=settings,
        db=db,
        mailer=mailer,
        gateway=RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret, session=gateway_session),
        captcha=CaptchaVerifier(settings.hcaptcha_secret, settings.hcaptcha_verify_url, session=captcha_session),
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def signup(client):
    def _signup(email="a@x.com", name="A", phone="123", password="pw123456", **extra):
        body = {"name": name, "email": email, "phone": phone, "password": password, "hcaptchaToken": "tok", **extra}
        return client.post("/api/signup", json=body)

    return _signup


@pytest.fixture
def auth_headers(signup):
    def _auth_headers(email="a@x.com"):
        resp = signup(email=email)
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['accessToken']}"}

    return _auth_headers


@pytest.fixture
def add_product(db):
    def _add_product(pid="P1", day=1, **fields):
        doc = {
            "id": pid,
            "name": f"Kurta {pid}",
            "price": 499.0,
            "marketPrice": 799.0,
            "category": "Kurtas",
            "image": f"https://cdn.example/{pid}.webp",
            "images": [f"https://cdn.example/{pid}-1.webp"],
            "sizes": ["S", "M", "L"],
            "colors": ["Red"],
            "inStock": True,
            "description": "Cotton kurta",
            "isNewArrival": False,
            "reviews": [],
            "createdAt": datetime(2024, 1, day),
        }
        doc.update(fields)
        return create_document(db, "product", doc)

    return _add_product
