from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Sequence, Tuple

from .database import get_connection, lock_clause, placeholder, transaction
from .errors import GroupOrderNotFoundError, GroupOrderUnavailableError, NotFoundError
from .models import (
    Company,
    GroupOrder,
    MenuItem,
    OrderLine,
    OrderStatus,
    Participant,
    PaymentToggle,
    Restaurant,
    Role,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class _Repository:
    def __init__(self, connection_factory=get_connection):
        self._connection_factory = connection_factory

    @contextmanager
    def _connection(self):
        conn = self._connection_factory()
        try:
            yield conn
        finally:
            conn.close()


class ParticipantRepository(_Repository):
    """Participants and the companies their admins own."""

    def get(self, participant_id: int) -> Participant | None:
        with self._connection() as conn:
            p = placeholder(conn)
            row = conn.execute(
                f"""
                SELECT id, role, name, phone_number, uuid, company_id, created_at
                FROM participants
                WHERE id = {p};
                """,
                (participant_id,),
            ).fetchone()
            return _participant(row) if row is not None else None

    def create_worker(
        self,
        participant_id: int,
        name: str,
        phone_number: str,
        company_id: str | None = None,
    ) -> Participant:
        participant = Participant(
            id=participant_id,
            role=Role.WORKER,
            name=name,
            phone_number=phone_number,
            uuid=str(uuid.uuid4()),
            company_id=company_id,
            created_at=_now(),
        )
        with self._connection() as conn:
            with transaction(conn):
                self._insert_participant(conn, participant)
        return participant

    def create_admin_with_company(
        self,
        participant_id: int,
        name: str,
        phone_number: str,
        company_name: str,
    ) -> Tuple[Participant, Company]:
        now = _now()
        company = Company(
            id=_new_id("comp"),
            name=company_name,
            admin_id=participant_id,
            created_at=now,
        )
        participant = Participant(
            id=participant_id,
            role=Role.ADMIN,
            name=name,
            phone_number=phone_number,
            uuid=str(uuid.uuid4()),
            company_id=None,
            created_at=now,
        )
        with self._connection() as conn:
            p = placeholder(conn)
            with transaction(conn):
                # The admin row must exist before the company can reference it,
                # so the link is written last.
                self._insert_participant(conn, participant)
                conn.execute(
                    f"""
                    INSERT INTO companies (id, name, admin_id, created_at)
                    VALUES ({p}, {p}, {p}, {p});
                    """,
                    (company.id, company.name, company.admin_id, company.created_at),
                )
                conn.execute(
                    f"UPDATE participants SET company_id = {p} WHERE id = {p};",
                    (company.id, participant_id),
                )
        return replace(participant, company_id=company.id), company

    def list_workers(self) -> List[Participant]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT id, role, name, phone_number, uuid, company_id, created_at
                FROM participants
                WHERE role = {p}
                ORDER BY created_at ASC;
                """,
                (Role.WORKER.value,),
            ).fetchall()
            return [_participant(row) for row in rows]

    def list_companies(self) -> List[Company]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT id, name, admin_id, created_at FROM companies ORDER BY name ASC;"
            ).fetchall()
            return [Company(**dict(row)) for row in rows]

    def get_company(self, company_id: str) -> Company | None:
        with self._connection() as conn:
            p = placeholder(conn)
            row = conn.execute(
                f"SELECT id, name, admin_id, created_at FROM companies WHERE id = {p};",
                (company_id,),
            ).fetchone()
            return Company(**dict(row)) if row is not None else None

    def _insert_participant(self, conn, participant: Participant) -> None:
        p = placeholder(conn)
        conn.execute(
            f"""
            INSERT INTO participants (id, role, name, phone_number, uuid, company_id, created_at)
            VALUES ({p}, {p}, {p}, {p}, {p}, {p}, {p});
            """,
            (
                participant.id,
                participant.role.value,
                participant.name,
                participant.phone_number,
                participant.uuid,
                participant.company_id,
                participant.created_at,
            ),
        )


class CatalogRepository(_Repository):
    """Restaurants and their menus."""

    def create_restaurant(self, admin_id: int, name: str) -> Restaurant:
        restaurant = Restaurant(
            id=_new_id("rest"), name=name, admin_id=admin_id, created_at=_now()
        )
        with self._connection() as conn:
            p = placeholder(conn)
            conn.execute(
                f"""
                INSERT INTO restaurants (id, name, admin_id, created_at)
                VALUES ({p}, {p}, {p}, {p});
                """,
                (restaurant.id, restaurant.name, restaurant.admin_id, restaurant.created_at),
            )
            conn.commit()
        return restaurant

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        with self._connection() as conn:
            p = placeholder(conn)
            row = conn.execute(
                f"SELECT id, name, admin_id, created_at FROM restaurants WHERE id = {p};",
                (restaurant_id,),
            ).fetchone()
            return Restaurant(**dict(row)) if row is not None else None

    def list_restaurants(self, admin_id: int) -> List[Restaurant]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT id, name, admin_id, created_at
                FROM restaurants
                WHERE admin_id = {p}
                ORDER BY name ASC;
                """,
                (admin_id,),
            ).fetchall()
            return [Restaurant(**dict(row)) for row in rows]

    def create_menu_item(self, restaurant_id: str, name: str, price_cents: int) -> MenuItem:
        item = MenuItem(
            id=_new_id("item"),
            restaurant_id=restaurant_id,
            name=name,
            price_cents=price_cents,
        )
        with self._connection() as conn:
            p = placeholder(conn)
            conn.execute(
                f"""
                INSERT INTO menu_items (id, restaurant_id, name, price_cents, created_at)
                VALUES ({p}, {p}, {p}, {p}, {p});
                """,
                (item.id, item.restaurant_id, item.name, item.price_cents, _now()),
            )
            conn.commit()
        return item

    def list_menu_items(self, restaurant_id: str) -> List[MenuItem]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT id, restaurant_id, name, price_cents
                FROM menu_items
                WHERE restaurant_id = {p}
                ORDER BY created_at ASC, id ASC;
                """,
                (restaurant_id,),
            ).fetchall()
            return [_menu_item(row) for row in rows]


_GROUP_ORDER_COLUMNS = """
    g.id, g.restaurant_id, r.name AS restaurant_name, g.created_by,
    g.status, g.created_at, g.updated_at
"""

_LINE_COLUMNS = """
    l.id, l.group_order_id, l.menu_item_id, m.name AS item_name, m.price_cents,
    l.worker_id, l.quantity, l.is_paid, l.paid_at
"""


class GroupOrderRepository(_Repository):
    """Group orders and the ledger of lines workers contribute to them."""

    def create_group_order(
        self, group_order_id: str, restaurant_id: str, created_by: int
    ) -> GroupOrder:
        now = _now()
        with self._connection() as conn:
            p = placeholder(conn)
            conn.execute(
                f"""
                INSERT INTO group_orders (id, restaurant_id, created_by, status, created_at, updated_at)
                VALUES ({p}, {p}, {p}, {p}, {p}, {p});
                """,
                (group_order_id, restaurant_id, created_by, OrderStatus.OPEN.value, now, now),
            )
            conn.commit()
        order = self.get_group_order(group_order_id)
        if order is None:
            raise GroupOrderNotFoundError(f"Group order {group_order_id} was not stored.")
        return order

    def get_group_order(self, group_order_id: str) -> GroupOrder | None:
        with self._connection() as conn:
            p = placeholder(conn)
            row = conn.execute(
                f"""
                SELECT {_GROUP_ORDER_COLUMNS}
                FROM group_orders g
                JOIN restaurants r ON r.id = g.restaurant_id
                WHERE g.id = {p};
                """,
                (group_order_id,),
            ).fetchone()
            return _group_order(row) if row is not None else None

    def list_for_admin(self, admin_id: int) -> List[GroupOrder]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT {_GROUP_ORDER_COLUMNS}
                FROM group_orders g
                JOIN restaurants r ON r.id = g.restaurant_id
                WHERE r.admin_id = {p}
                ORDER BY g.created_at DESC;
                """,
                (admin_id,),
            ).fetchall()
            return [_group_order(row) for row in rows]

    def list_open(self) -> List[GroupOrder]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT {_GROUP_ORDER_COLUMNS}
                FROM group_orders g
                JOIN restaurants r ON r.id = g.restaurant_id
                WHERE g.status = {p}
                ORDER BY g.created_at DESC;
                """,
                (OrderStatus.OPEN.value,),
            ).fetchall()
            return [_group_order(row) for row in rows]

    def list_joined(self, worker_id: int) -> List[GroupOrder]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT {_GROUP_ORDER_COLUMNS}
                FROM group_orders g
                JOIN restaurants r ON r.id = g.restaurant_id
                WHERE g.id IN (
                    SELECT group_order_id FROM order_lines WHERE worker_id = {p}
                )
                ORDER BY g.created_at DESC;
                """,
                (worker_id,),
            ).fetchall()
            return [_group_order(row) for row in rows]

    def add_lines(
        self,
        group_order_id: str,
        worker_id: int,
        lines: Sequence[Tuple[str, int]],
    ) -> List[str]:
        """Insert ``(menu_item_id, quantity)`` pairs for one worker atomically.

        The group order row is locked and must still be open; every menu item
        must belong to the order's restaurant. Either all lines are written or
        none are.
        """
        if not lines:
            return []
        # Lines of one submission share created_at; the suffix keeps their order.
        batch = _new_id("line")
        line_ids = [f"{batch}-{position:03d}" for position in range(len(lines))]
        now = _now()
        with self._connection() as conn:
            p = placeholder(conn)
            with transaction(conn):
                row = conn.execute(
                    f"SELECT restaurant_id, status FROM group_orders WHERE id = {p}{lock_clause(conn)};",
                    (group_order_id,),
                ).fetchone()
                if row is None or row["status"] != OrderStatus.OPEN.value:
                    raise GroupOrderUnavailableError(
                        f"Group order {group_order_id} is no longer open."
                    )

                wanted = sorted({menu_item_id for menu_item_id, _ in lines})
                marks = ", ".join(p for _ in wanted)
                found = conn.execute(
                    f"""
                    SELECT id FROM menu_items
                    WHERE restaurant_id = {p} AND id IN ({marks});
                    """,
                    [row["restaurant_id"], *wanted],
                ).fetchall()
                missing = set(wanted) - {item["id"] for item in found}
                if missing:
                    raise NotFoundError(
                        f"Menu items not offered for this order: {', '.join(sorted(missing))}"
                    )

                for line_id, (menu_item_id, quantity) in zip(line_ids, lines):
                    conn.execute(
                        f"""
                        INSERT INTO order_lines (
                            id, group_order_id, menu_item_id, worker_id,
                            quantity, is_paid, paid_at, created_at
                        ) VALUES ({p}, {p}, {p}, {p}, {p}, 0, NULL, {p});
                        """,
                        (line_id, group_order_id, menu_item_id, worker_id, quantity, now),
                    )
        return line_ids

    def list_lines(self, group_order_id: str, worker_id: int | None = None) -> List[OrderLine]:
        with self._connection() as conn:
            p = placeholder(conn)
            params: list = [group_order_id]
            worker_filter = ""
            if worker_id is not None:
                worker_filter = f"AND l.worker_id = {p}"
                params.append(worker_id)
            rows = conn.execute(
                f"""
                SELECT {_LINE_COLUMNS}
                FROM order_lines l
                JOIN menu_items m ON m.id = l.menu_item_id
                WHERE l.group_order_id = {p} {worker_filter}
                ORDER BY l.created_at ASC, l.id ASC;
                """,
                params,
            ).fetchall()
            return [_order_line(row) for row in rows]

    def worker_totals(self, group_order_id: str) -> Dict[int, int]:
        """Amount due per worker in cents."""
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT l.worker_id, SUM(l.quantity * m.price_cents) AS total_cents
                FROM order_lines l
                JOIN menu_items m ON m.id = l.menu_item_id
                WHERE l.group_order_id = {p}
                GROUP BY l.worker_id;
                """,
                (group_order_id,),
            ).fetchall()
            return {int(row["worker_id"]): int(row["total_cents"]) for row in rows}

    def toggle_paid(self, group_order_id: str, worker_id: int) -> PaymentToggle:
        """Flip the paid flag of all of a worker's lines in one order."""
        with self._connection() as conn:
            p = placeholder(conn)
            with transaction(conn):
                rows = conn.execute(
                    f"""
                    SELECT id, is_paid FROM order_lines
                    WHERE group_order_id = {p} AND worker_id = {p}
                    ORDER BY created_at ASC, id ASC{lock_clause(conn)};
                    """,
                    (group_order_id, worker_id),
                ).fetchall()
                if not rows:
                    raise NotFoundError(
                        f"Worker {worker_id} has no lines in group order {group_order_id}."
                    )
                is_paid = not bool(rows[0]["is_paid"])
                paid_at = _now() if is_paid else None
                cursor = conn.execute(
                    f"""
                    UPDATE order_lines
                    SET is_paid = {p}, paid_at = {p}
                    WHERE group_order_id = {p} AND worker_id = {p};
                    """,
                    (int(is_paid), paid_at, group_order_id, worker_id),
                )
        return PaymentToggle(
            group_order_id=group_order_id,
            worker_id=worker_id,
            is_paid=is_paid,
            paid_at=paid_at,
            lines_updated=cursor.rowcount,
        )

    def update_status(self, group_order_id: str, admin_id: int, status: OrderStatus) -> bool:
        """Set the status if the order belongs to one of the admin's restaurants."""
        with self._connection() as conn:
            p = placeholder(conn)
            cursor = conn.execute(
                f"""
                UPDATE group_orders
                SET status = {p}, updated_at = {p}
                WHERE id = {p}
                  AND restaurant_id IN (SELECT id FROM restaurants WHERE admin_id = {p});
                """,
                (status.value, _now(), group_order_id, admin_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def owning_admin(self, group_order_id: str) -> Participant | None:
        with self._connection() as conn:
            p = placeholder(conn)
            row = conn.execute(
                f"""
                SELECT u.id, u.role, u.name, u.phone_number, u.uuid, u.company_id, u.created_at
                FROM participants u
                JOIN restaurants r ON r.admin_id = u.id
                JOIN group_orders g ON g.restaurant_id = r.id
                WHERE g.id = {p} AND u.role = {p};
                """,
                (group_order_id, Role.ADMIN.value),
            ).fetchone()
            return _participant(row) if row is not None else None

    def participants_in(self, group_order_id: str) -> List[Participant]:
        with self._connection() as conn:
            p = placeholder(conn)
            rows = conn.execute(
                f"""
                SELECT id, role, name, phone_number, uuid, company_id, created_at
                FROM participants
                WHERE id IN (
                    SELECT worker_id FROM order_lines WHERE group_order_id = {p}
                )
                ORDER BY name ASC, id ASC;
                """,
                (group_order_id,),
            ).fetchall()
            return [_participant(row) for row in rows]


def _participant(row) -> Participant:
    return Participant(
        id=int(row["id"]),
        role=Role(row["role"]),
        name=row["name"],
        phone_number=row["phone_number"],
        uuid=row["uuid"],
        company_id=row["company_id"],
        created_at=row["created_at"],
    )


def _menu_item(row) -> MenuItem:
    return MenuItem(
        id=row["id"],
        restaurant_id=row["restaurant_id"],
        name=row["name"],
        price_cents=int(row["price_cents"]),
    )


def _group_order(row) -> GroupOrder:
    return GroupOrder(
        id=row["id"],
        restaurant_id=row["restaurant_id"],
        restaurant_name=row["restaurant_name"],
        created_by=int(row["created_by"]),
        status=OrderStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _order_line(row) -> OrderLine:
    return OrderLine(
        id=row["id"],
        group_order_id=row["group_order_id"],
        menu_item_id=row["menu_item_id"],
        item_name=row["item_name"],
        price_cents=int(row["price_cents"]),
        worker_id=int(row["worker_id"]),
        quantity=int(row["quantity"]),
        is_paid=bool(row["is_paid"]),
        paid_at=row["paid_at"],
    )
