"""
Seed data for the stand-in target.

Generates operators, calls and orders with Faker so that load runs and
query probes hit realistically sized tables instead of empty ones.
Must be called inside an application context.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

from faker import Faker
from sqlalchemy import select

from target_app import db
from target_app.models import Call, CallStatus, Operator, Order, OrderStatus

logger = logging.getLogger(__name__)

CITIES = ("Moscow", "Saint Petersburg", "Kazan", "Novosibirsk", "Yekaterinburg")
ORDER_TYPES = ("first_time", "repeat", "warranty")
EQUIPMENT_TYPES = ("kp", "bt", "mnch")


def ensure_admin_operator(login: str, password: str) -> Operator:
    """Create the admin operator used by the harness login if it is missing."""
    operator = db.session.scalar(select(Operator).where(Operator.login == login))
    if operator is None:
        operator = Operator(name="Administrator", login=login, role="admin")
        operator.set_password(password)
        db.session.add(operator)
        db.session.commit()
        logger.info("Created admin operator %s", login)
    return operator


def seed_demo_data(
    operators: int = 5,
    calls: int = 500,
    orders: int = 200,
    seed: int | None = None,
) -> dict[str, int]:
    """
    Insert demo operators, calls and orders.

    Args:
        operators: Number of extra operators to create.
        calls: Number of calls, spread over the operators.
        orders: Number of orders, spread over the operators.
        seed: Optional seed for reproducible data.

    Returns:
        Mapping of table name to the number of rows inserted.
    """
    fake = Faker()
    rng = random.Random(seed)
    if seed is not None:
        fake.seed_instance(seed)

    new_operators = []
    for _ in range(operators):
        operator = Operator(name=fake.name(), login=fake.unique.user_name(), role="operator")
        operator.set_password(fake.password(length=12))
        new_operators.append(operator)
    db.session.add_all(new_operators)
    db.session.flush()

    operator_ids = list(db.session.scalars(select(Operator.id)))
    now = datetime.now(timezone.utc)

    db.session.add_all(
        Call(
            rk=f"RK-{rng.randint(1, 50)}",
            city=rng.choice(CITIES),
            phone_client=fake.numerify("+7##########"),
            phone_ats=fake.numerify("+7##########"),
            date_create=now - timedelta(days=rng.randint(0, 365), minutes=rng.randint(0, 1440)),
            operator_id=rng.choice(operator_ids),
            status=rng.choice(list(CallStatus)).value,
        )
        for _ in range(calls)
    )
    db.session.add_all(
        Order(
            rk=f"RK-{rng.randint(1, 50)}",
            city=rng.choice(CITIES),
            phone=fake.numerify("8##########"),
            type_order=rng.choice(ORDER_TYPES),
            client_name=fake.name(),
            address=fake.address(),
            date_meeting=now + timedelta(days=rng.randint(0, 30)),
            type_equipment=rng.choice(EQUIPMENT_TYPES),
            problem=fake.sentence(nb_words=6),
            status_order=rng.choice(list(OrderStatus)).value,
            operator_id=rng.choice(operator_ids),
            create_date=now - timedelta(days=rng.randint(0, 365)),
        )
        for _ in range(orders)
    )
    db.session.commit()

    logger.info("Seeded %s operators, %s calls, %s orders", operators, calls, orders)
    return {"operators": operators, "calls": calls, "orders": orders}
