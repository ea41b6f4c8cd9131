from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from .errors import AccessDeniedError, RestaurantNotFoundError
from .models import MenuItem, Participant, Restaurant
from .repository import CatalogRepository
from .validation import parse_price, require_text

logger = logging.getLogger(__name__)


class CatalogManager:
    """Restaurants and menu items owned by admins."""

    def __init__(self, repository: CatalogRepository):
        self._repo = repository

    def add_restaurant(self, admin: Participant, name: str) -> Restaurant:
        _require_admin(admin)
        restaurant = self._repo.create_restaurant(admin.id, require_text(name, "Restaurant name"))
        logger.info("Admin %s added restaurant %s (%s)", admin.id, restaurant.id, restaurant.name)
        return restaurant

    def add_menu_item(
        self,
        admin: Participant,
        restaurant_id: str,
        name: str,
        price: str | Decimal,
    ) -> MenuItem:
        restaurant = self.owned_restaurant(admin, restaurant_id)
        item_name = require_text(name, "Item name")
        price_cents = parse_price(price)
        item = self._repo.create_menu_item(restaurant.id, item_name, price_cents)
        logger.info("Added menu item %s to restaurant %s", item.id, restaurant.id)
        return item

    def list_restaurants(self, admin: Participant) -> List[Restaurant]:
        return self._repo.list_restaurants(admin.id)

    def list_menu_items(self, restaurant_id: str) -> List[MenuItem]:
        return self._repo.list_menu_items(restaurant_id)

    def owned_restaurant(self, admin: Participant, restaurant_id: str) -> Restaurant:
        _require_admin(admin)
        restaurant = self._repo.get_restaurant(restaurant_id)
        if restaurant is None:
            raise RestaurantNotFoundError("Restaurant not found.")
        if restaurant.admin_id != admin.id:
            raise AccessDeniedError("You can only manage your own restaurants.")
        return restaurant


def _require_admin(participant: Participant) -> None:
    if not participant.is_admin:
        raise AccessDeniedError("Only admins can manage restaurants.")
