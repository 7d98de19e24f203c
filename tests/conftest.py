import itertools

import pytest

from ofiz import create_app
from ofiz.extensions import db
from ofiz.models import User
from ofiz.services import AuthService, BookingService
from ofiz.services.mercadopago_client import ProviderResult

CARD_FORM = {"token": "card-token", "payment_method_id": "visa", "installments": 1}

_emails = itertools.count(1)


class FakeProvider:
    """Stands in for MercadoPagoClient; records every call it receives."""

    def __init__(self):
        self.calls = []
        self.status = "approved"
        self.status_detail = "accredited"
        self.error = None
        self.lookup_status = "approved"
        self._ids = itertools.count(9001)

    def __call__(self, *args, **kwargs):
        return self

    @property
    def created(self):
        return [kwargs for name, kwargs in self.calls if name == "create_payment"]

    def create_payment(self, **kwargs):
        self.calls.append(("create_payment", kwargs))
        if self.error is not None:
            raise self.error
        return ProviderResult(
            status=self.status,
            provider_payment_id=str(next(self._ids)),
            status_detail=self.status_detail,
            payment_method_id=kwargs.get("payment_method_id"),
        )

    def get_payment(self, provider_payment_id):
        self.calls.append(("get_payment", {"provider_payment_id": provider_payment_id}))
        return ProviderResult(
            status=self.lookup_status,
            provider_payment_id=str(provider_payment_id),
            status_detail="accredited" if self.lookup_status == "approved" else self.lookup_status,
            payment_method_id="visa",
        )


def make_user(role, locale="es", name=None):
    user = User(
        full_name=name or f"{role.title()} {next(_emails)}",
        email=f"{role}{next(_emails)}@ofiz.test",
        role=role,
        locale=locale,
    )
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {AuthService.issue_token(user)}"}


def advance(booking, client, master, *actions):
    for action in actions:
        actor = client if action in ("accept_proposal", "approve_work") else master
        booking = BookingService.transition(booking.id, actor, action)
    return booking


def complete(booking, client, master):
    if booking.status == "pending":
        booking = BookingService.transition(booking.id, master, "accept")
    return advance(booking, client, master, "start_work", "request_review", "approve_work")


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client_user(ctx):
    return make_user("client")


@pytest.fixture
def master_user(ctx):
    return make_user("master")


@pytest.fixture
def booking(client_user, master_user):
    return BookingService.create_booking(client_user, master_user.id, "1000", notes="Arreglar canilla")


@pytest.fixture
def provider(monkeypatch):
    fake = FakeProvider()
    monkeypatch.setattr("ofiz.services.payment_service.MercadoPagoClient", fake)
    return fake
