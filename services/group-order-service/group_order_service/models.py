from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    WORKER = "worker"


class OrderStatus(str, Enum):
    OPEN = "open"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    OUT_FOR_DELIVERY = "outForDelivery"
    ARRIVED = "arrived"


# Statuses an admin can move a group order to. Every one of them is reachable
# from any current status; nothing leads back to OPEN.
TARGET_STATUSES = tuple(status for status in OrderStatus if status is not OrderStatus.OPEN)


@dataclass(frozen=True)
class Participant:
    id: int
    role: Role
    name: str
    phone_number: str
    uuid: str
    company_id: Optional[str]
    created_at: str

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class Company:
    id: str
    name: str
    admin_id: int
    created_at: str


@dataclass(frozen=True)
class Restaurant:
    id: str
    name: str
    admin_id: int
    created_at: str


@dataclass(frozen=True)
class MenuItem:
    id: str
    restaurant_id: str
    name: str
    price_cents: int

    @property
    def price(self) -> Decimal:
        return Decimal(self.price_cents) / 100


@dataclass(frozen=True)
class GroupOrder:
    id: str
    restaurant_id: str
    restaurant_name: str
    created_by: int
    status: OrderStatus
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class OrderLine:
    id: str
    group_order_id: str
    menu_item_id: str
    item_name: str
    price_cents: int
    worker_id: int
    quantity: int
    is_paid: bool
    paid_at: Optional[str]

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass(frozen=True)
class PaymentToggle:
    group_order_id: str
    worker_id: int
    is_paid: bool
    paid_at: Optional[str]
    lines_updated: int
