from __future__ import annotations

import pytest

from group_order_service.errors import (
    AccessDeniedError,
    InputValidationError,
    PriceFormatError,
    RestaurantNotFoundError,
)


def test_add_menu_item_round_trips_name_and_price(services, admin):
    restaurant = services.catalog.add_restaurant(admin, "  Pasta House ")
    item = services.catalog.add_menu_item(admin, restaurant.id, "Pasta", "12.50")

    assert restaurant.name == "Pasta House"
    listed = services.catalog.list_menu_items(restaurant.id)
    assert [(i.id, i.name, i.price_cents) for i in listed] == [(item.id, "Pasta", 1250)]


@pytest.mark.parametrize("price", ["twelve", "-3", "1.999"])
def test_malformed_price_inserts_nothing(services, admin, price):
    restaurant = services.catalog.add_restaurant(admin, "Pasta House")
    with pytest.raises(PriceFormatError):
        services.catalog.add_menu_item(admin, restaurant.id, "Pasta", price)
    assert services.catalog.list_menu_items(restaurant.id) == []


def test_empty_names_are_rejected(services, admin):
    with pytest.raises(InputValidationError):
        services.catalog.add_restaurant(admin, "   ")
    restaurant = services.catalog.add_restaurant(admin, "Pasta House")
    with pytest.raises(InputValidationError):
        services.catalog.add_menu_item(admin, restaurant.id, "", "1.00")


def test_workers_cannot_manage_restaurants(services, worker):
    with pytest.raises(AccessDeniedError):
        services.catalog.add_restaurant(worker, "Taco Stand")


def test_admins_only_manage_their_own_restaurants(services, admin):
    rival, _ = services.participants.create_admin_with_company(1002, "Eve", "+15559999", "Rival")
    restaurant = services.catalog.add_restaurant(admin, "Pasta House")

    with pytest.raises(AccessDeniedError):
        services.catalog.add_menu_item(rival, restaurant.id, "Pasta", "1.00")
    with pytest.raises(RestaurantNotFoundError):
        services.catalog.add_menu_item(admin, "rest-missing", "Pasta", "1.00")
    assert services.catalog.list_restaurants(rival) == []


@pytest.mark.parametrize("price", ["1e30", "99999999999999999999"])
def test_oversized_price_is_a_format_error(services, admin, price):
    restaurant = services.catalog.add_restaurant(admin, "Pasta House")
    with pytest.raises(PriceFormatError):
        services.catalog.add_menu_item(admin, restaurant.id, "Gold", price)
    assert services.catalog.list_menu_items(restaurant.id) == []
