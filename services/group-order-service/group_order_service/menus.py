from __future__ import annotations

from typing import Sequence

from .models import Role

ADD_RESTAURANT = "Add Restaurant"
ADD_MENU_ITEM = "Add Menu Item"
MY_RESTAURANTS = "My Restaurants"
CREATE_GROUP_ORDER = "Create Group Order"
VIEW_GROUP_ORDERS = "View Group Orders"
JOIN_EXISTING_ORDERS = "Join Existing Orders"
VIEW_MY_GROUP_ORDERS = "View My Group Orders"
LOGOUT = "Logout"
START = "/start"

ADMIN_MENU: Sequence[Sequence[str]] = (
    (ADD_RESTAURANT, ADD_MENU_ITEM),
    (MY_RESTAURANTS, CREATE_GROUP_ORDER),
    (VIEW_GROUP_ORDERS,),
    (LOGOUT,),
)

WORKER_MENU: Sequence[Sequence[str]] = (
    (JOIN_EXISTING_ORDERS,),
    (VIEW_MY_GROUP_ORDERS,),
    (LOGOUT,),
)


def menu_for(role: Role) -> Sequence[Sequence[str]]:
    return ADMIN_MENU if role is Role.ADMIN else WORKER_MENU


def menu_commands(role: Role) -> frozenset:
    """Every label on the role's keyboard plus ``/start``."""
    return frozenset(label for row in menu_for(role) for label in row) | {START}
