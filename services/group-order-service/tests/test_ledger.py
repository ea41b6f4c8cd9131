from __future__ import annotations

import threading

import pytest

from group_order_service.errors import AccessDeniedError, NotFoundError
from group_order_service.ledger import render_admin_view
from group_order_service.models import TARGET_STATUSES


@pytest.fixture()
def order(services, admin, pasta_house):
    return services.coordinator.create_group_order(admin, pasta_house.id)


def _submit(services, participant, order, text):
    services.coordinator.join_group_order(participant, order.id, participant.id)
    services.coordinator.submit_lines(participant, participant.id, text)


def test_pasta_house_scenario(services, admin, worker, order):
    _submit(services, worker, order, "1:2")

    entry = services.ledger.view_details(order.id).for_worker(worker.id)
    assert entry.total_cents == 2500
    assert not entry.is_paid
    assert "$25.00" in render_admin_view(services.ledger.view_details(order.id))

    paid = services.ledger.toggle_paid(order.id, worker.id)
    entry = services.ledger.view_details(order.id).for_worker(worker.id)
    assert paid.is_paid and entry.is_paid
    assert entry.paid_at is not None

    services.ledger.toggle_paid(order.id, worker.id)
    entry = services.ledger.view_details(order.id).for_worker(worker.id)
    assert not entry.is_paid
    assert entry.paid_at is None
    assert all(line.paid_at is None for line in entry.lines)


def test_total_ignores_insertion_order(services, admin, worker, other_worker, order):
    _submit(services, worker, order, "2:1, 1:3")
    _submit(services, other_worker, order, "1:3, 2:1")

    totals = {entry.worker.id: entry.total_cents for entry in services.ledger.view_details(order.id).workers}
    assert totals[worker.id] == totals[other_worker.id] == 3 * 1250 + 725


def test_actions_cover_workers_and_target_statuses(services, worker, other_worker, order):
    _submit(services, worker, order, "1:1")
    _submit(services, other_worker, order, "2:1")

    tokens = [action.token for row in services.ledger.view_details(order.id).actions for action in row]
    assert f"togglePaid_{order.id}_{worker.id}" in tokens
    assert f"togglePaid_{order.id}_{other_worker.id}" in tokens
    for status in TARGET_STATUSES:
        assert f"setStatus_{order.id}_{status.value}" in tokens
    assert f"setStatus_{order.id}_open" not in tokens


def test_admin_view_lists_each_worker(services, admin, worker, order):
    _submit(services, worker, order, "1:2, 2:1")
    services.ledger.show_details(admin.id, admin, order.id)

    message = services.transport.messages_to(admin.id)[-1]
    assert message.text.startswith(f"Group Order Details\nGroup ID: {order.id}\nStatus: open\nRestaurant: Pasta House")
    assert f"Worker: Bob (UUID: {worker.uuid})" in message.text
    assert "Pasta x2 - $25.00" in message.text
    assert "Total: $32.25 (Unpaid)" in message.text
    assert "inline_keyboard" in message.reply_markup


def test_worker_view_shows_only_own_lines(services, worker, other_worker, order):
    _submit(services, worker, order, "1:1")
    _submit(services, other_worker, order, "2:4")

    services.ledger.show_details(worker.id, worker, order.id)

    text = services.last_text(worker.id)
    assert "Pasta x1" in text
    assert "Salad" not in text
    assert "Your total: $12.50 (Unpaid)" in text


def test_details_denied_to_outsiders(services, worker, order):
    rival, _ = services.participants.create_admin_with_company(1009, "Eve", "+15559999", "Rival")
    with pytest.raises(AccessDeniedError):
        services.ledger.show_details(rival.id, rival, order.id)
    with pytest.raises(NotFoundError):
        services.ledger.show_details(worker.id, worker, order.id)


def test_toggle_paid_for_worker_without_lines(services, worker, order):
    with pytest.raises(NotFoundError):
        services.ledger.toggle_paid(order.id, worker.id)


def test_concurrent_toggles_do_not_lose_an_update(services, worker, order):
    _submit(services, worker, order, "1:1, 2:2")
    barrier = threading.Barrier(2)
    errors = []

    def toggle():
        barrier.wait()
        try:
            services.ledger.toggle_paid(order.id, worker.id)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=toggle) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    lines = services.orders.list_lines(order.id, worker_id=worker.id)
    assert all(not line.is_paid and line.paid_at is None for line in lines)
