"""
Shared pytest fixtures for the performance harness test suite.

Unit tests never touch the network: they drive the harness through fake
HTTP sessions with a fixed, configurable latency. Integration tests run
against the stand-in target, either in-process through the Flask test
client or over real HTTP through a live server thread.

Key Concepts Demonstrated:
- Fixture scopes (function, module, session)
- Fixture dependencies
- Test data factories
- Database setup/teardown
- Fake collaborators instead of network access
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import requests
from faker import Faker
from werkzeug.serving import make_server

# Set testing environment before importing the target app
os.environ["HARNESS_ENV"] = "testing"

from target_app import create_app, db
from target_app.models import Call, CallStatus, Operator, Order, OrderStatus
from target_app.seed import ensure_admin_operator
from harness.record_store import SqlAlchemyRecordStore


# Initialize Faker for generating test data
fake = Faker()


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create the stand-in target for the test session.

    Yields:
        Flask application instance configured for testing.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """
    Create a test client for making HTTP requests without a server.

    Yields:
        Flask test client.
    """
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Create a fresh database for each test.

    Tables are recreated before the test together with the admin operator
    the harness logs in as, and dropped afterwards so tests never see
    each other's rows.

    Yields:
        The Flask-SQLAlchemy extension bound to the app context.
    """
    with app.app_context():
        db.drop_all()
        db.create_all()
        ensure_admin_operator(
            app.config["TARGET_ADMIN_LOGIN"], app.config["TARGET_ADMIN_PASSWORD"]
        )
        yield db
        db.session.rollback()
        db.drop_all()


@pytest.fixture
def record_store(db_session) -> SqlAlchemyRecordStore:
    """Record store over the test database."""
    return SqlAlchemyRecordStore(
        db_session.session, {"calls": Call, "orders": Order, "operators": Operator}
    )


@pytest.fixture
def auth_headers(db_session, client, app) -> dict[str, str]:
    """
    Log in as the admin operator and return bearer headers.

    Requires the admin operator created by ``db_session``.
    """
    response = client.post(
        "/api/auth/login",
        json={
            "login": app.config["TARGET_ADMIN_LOGIN"],
            "password": app.config["TARGET_ADMIN_PASSWORD"],
        },
    )
    token = response.get_json()["accessToken"]
    return {"Authorization": f"Bearer {token}"}


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def operator_factory(db_session) -> Callable[..., Operator]:
    """
    Factory fixture for creating Operator rows.

    Example:
        def test_something(operator_factory):
            operator = operator_factory(login="jdoe")
            assert operator.id is not None
    """

    def _create_operator(login: str | None = None, password: str = "secret123") -> Operator:
        operator = Operator(
            name=fake.name(),
            login=login or fake.unique.user_name(),
            role="operator",
        )
        operator.set_password(password)
        db_session.session.add(operator)
        db_session.session.commit()
        return operator

    return _create_operator


@pytest.fixture
def call_factory(db_session) -> Callable[..., Call]:
    """
    Factory fixture for creating Call rows with Faker defaults.

    Returns:
        Function that creates and returns Call instances.
    """

    def _create_call(
        operator_id: int = 1,
        city: str | None = None,
        status: str = CallStatus.ANSWERED.value,
        date_create: datetime | None = None,
    ) -> Call:
        call = Call(
            rk=f"RK-{fake.random_int(1, 50)}",
            city=city or fake.city(),
            phone_client=fake.numerify("+7##########"),
            phone_ats=fake.numerify("+7##########"),
            date_create=date_create or datetime(2025, 6, 1, tzinfo=timezone.utc),
            operator_id=operator_id,
            status=status,
        )
        db_session.session.add(call)
        db_session.session.commit()
        return call

    return _create_call


@pytest.fixture
def order_factory(db_session) -> Callable[..., Order]:
    """Factory fixture for creating Order rows with Faker defaults."""

    def _create_order(
        operator_id: int = 1,
        phone: str | None = None,
        status_order: str = OrderStatus.NEW.value,
    ) -> Order:
        now = datetime.now(timezone.utc)
        order = Order(
            rk=f"RK-{fake.random_int(1, 50)}",
            city=fake.city(),
            phone=phone or fake.numerify("8##########"),
            type_order="first_time",
            client_name=fake.name(),
            address=fake.address(),
            date_meeting=now + timedelta(days=3),
            type_equipment="kp",
            problem=fake.sentence(nb_words=5),
            status_order=status_order,
            operator_id=operator_id,
            create_date=now,
        )
        db_session.session.add(order)
        db_session.session.commit()
        return order

    return _create_order


@pytest.fixture
def populated_store(
    record_store, operator_factory, call_factory, order_factory
) -> SqlAlchemyRecordStore:
    """
    Record store holding a small, known data set.

    Operator 1 (admin) owns three calls in Moscow, two answered and one
    missed; a second operator owns one busy call in Kazan. Two orders
    exist, one new and one done.
    """
    call_factory(operator_id=1, city="Moscow", status=CallStatus.ANSWERED.value)
    call_factory(operator_id=1, city="Moscow", status=CallStatus.ANSWERED.value)
    call_factory(operator_id=1, city="Moscow", status=CallStatus.MISSED.value)
    other = operator_factory()
    call_factory(
        operator_id=other.id,
        city="Kazan",
        status=CallStatus.BUSY.value,
        date_create=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    order_factory(phone="89990001122", status_order=OrderStatus.NEW.value)
    order_factory(phone="+70001112233", status_order=OrderStatus.DONE.value)
    return record_store


# -----------------------------------------------------------------------------
# Fake HTTP Fixtures
# -----------------------------------------------------------------------------

class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """
    Stand-in for ``requests.Session`` with a fixed service time.

    Args:
        latency_ms: Time every request takes.
        status_code: Status returned when ``responder`` is not set.
        responder: Optional ``(method, url, kwargs) -> FakeResponse``
            callable; may raise to simulate transport errors.
    """

    def __init__(
        self,
        latency_ms: float = 0.0,
        status_code: int = 200,
        responder: Callable[[str, str, dict[str, Any]], FakeResponse] | None = None,
    ):
        self.latency_ms = latency_ms
        self.status_code = status_code
        self.responder = responder
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False
        self._lock = threading.Lock()

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        with self._lock:
            self.calls.append((method, url, kwargs))
        if self.latency_ms:
            time.sleep(self.latency_ms / 1000)
        if self.responder is not None:
            return self.responder(method, url, kwargs)
        return FakeResponse(self.status_code)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session_factory() -> Callable[..., Callable[[str], FakeSession]]:
    """
    Build ``token -> FakeSession`` factories for the orchestrator.

    Every created session is kept on ``factory.sessions`` so tests can
    inspect them after a run.
    """

    def _make(**session_kwargs: Any) -> Callable[[str], FakeSession]:
        def factory(token: str) -> FakeSession:
            session = FakeSession(**session_kwargs)
            session.token = token
            factory.sessions.append(session)
            return session

        factory.sessions = []
        return factory

    return _make


# -----------------------------------------------------------------------------
# Live Server Fixtures
# -----------------------------------------------------------------------------

def _wait_for_healthy(url: str, timeout: int = 15, interval: float = 0.2) -> None:
    """Poll the target health endpoint until ready or timeout."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            response = requests.get(f"{url}/health", timeout=2)
            if response.status_code == 200:
                return
        except requests.RequestException:
            pass
        time.sleep(interval)
    raise RuntimeError(f"Target at {url} not healthy after {timeout}s")


@pytest.fixture(scope="module")
def live_server(app) -> Generator[str, None, None]:
    """
    Serve the stand-in target over real HTTP from a daemon thread.

    Yields:
        API base URL, e.g. ``http://127.0.0.1:54321/api``.
    """
    with app.app_context():
        db.drop_all()
        db.create_all()
        ensure_admin_operator(
            app.config["TARGET_ADMIN_LOGIN"], app.config["TARGET_ADMIN_PASSWORD"]
        )

    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    base_url = f"http://127.0.0.1:{server.server_port}/api"
    try:
        _wait_for_healthy(base_url)
        yield base_url
    finally:
        server.shutdown()
        thread.join(timeout=5)
        with app.app_context():
            db.session.remove()
            db.drop_all()
