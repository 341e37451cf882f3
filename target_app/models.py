"""
Database models for the stand-in call-center target.

Three tables are enough for both the HTTP scenarios and the query probes:
operators, the calls they handle, and the orders created from those calls.
The columns the query benchmark filters on (operator id, creation date,
city, status) are indexed so indexed-access probes measure index lookups.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from target_app import db


class CallStatus(str, Enum):
    """Enumeration of possible call outcomes."""

    ANSWERED = "answered"
    MISSED = "missed"
    BUSY = "busy"


class OrderStatus(str, Enum):
    """Enumeration of possible order states."""

    NEW = "new"
    IN_WORK = "in_work"
    DONE = "done"
    CANCELLED = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert datetime to an ISO-8601 UTC string.

    SQLite returns naive datetime values even when timezone-aware columns
    are declared, so naive values are treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


class Operator(db.Model):
    """
    Call-center operator, also the account used to log in.

    Attributes:
        id: Unique identifier.
        name: Display name.
        login: Unique login name.
        password_hash: Werkzeug-generated password hash.
        role: ``admin`` or ``operator``.
        created_at: Account creation time.
    """

    __tablename__ = "operators"

    id: int = db.Column(db.Integer, primary_key=True)
    name: str = db.Column(db.String(120), nullable=False)
    login: str = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    role: str = db.Column(db.String(20), nullable=False, default="operator")
    created_at: datetime = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "login": self.login,
            "role": self.role,
            "created_at": _to_utc_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Operator {self.id}: {self.login}>"


class Call(db.Model):
    """Telephony log entry handled by an operator."""

    __tablename__ = "calls"

    id: int = db.Column(db.Integer, primary_key=True)
    rk: str = db.Column(db.String(50), nullable=False)
    city: str = db.Column(db.String(120), nullable=False, index=True)
    phone_client: str = db.Column(db.String(32), nullable=False)
    phone_ats: str = db.Column(db.String(32), nullable=False)
    date_create: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    operator_id: int = db.Column(
        db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True
    )
    status: str = db.Column(
        db.String(20), nullable=False, default=CallStatus.ANSWERED.value, index=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rk": self.rk,
            "city": self.city,
            "phone_client": self.phone_client,
            "phone_ats": self.phone_ats,
            "date_create": _to_utc_iso(self.date_create),
            "operator_id": self.operator_id,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return f"<Call {self.id}: {self.status}>"


class Order(db.Model):
    """Service order created from a call."""

    __tablename__ = "orders"

    id: int = db.Column(db.Integer, primary_key=True)
    rk: str = db.Column(db.String(50), nullable=False)
    city: str = db.Column(db.String(120), nullable=False)
    phone: str = db.Column(db.String(32), nullable=False)
    type_order: str = db.Column(db.String(40), nullable=False)
    client_name: str = db.Column(db.String(120), nullable=False)
    address: str = db.Column(db.String(255), nullable=False)
    date_meeting: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)
    type_equipment: str = db.Column(db.String(40), nullable=False)
    problem: str = db.Column(db.Text, nullable=True)
    status_order: str = db.Column(
        db.String(20), nullable=False, default=OrderStatus.NEW.value, index=True
    )
    operator_id: int = db.Column(
        db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True
    )
    create_date: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rk": self.rk,
            "city": self.city,
            "phone": self.phone,
            "type_order": self.type_order,
            "client_name": self.client_name,
            "address": self.address,
            "date_meeting": _to_utc_iso(self.date_meeting),
            "type_equipment": self.type_equipment,
            "problem": self.problem,
            "status_order": self.status_order,
            "operator_id": self.operator_id,
            "create_date": _to_utc_iso(self.create_date),
        }

    def __repr__(self) -> str:
        return f"<Order {self.id}: {self.status_order}>"
