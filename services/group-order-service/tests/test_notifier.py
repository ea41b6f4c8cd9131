from __future__ import annotations

import httpx
import pytest

from group_order_service.notifier import Action, Notifier, render_markup
from group_order_service.telegram_client import LoggingTransport, TelegramClient, TransportError


class BrokenTransport(LoggingTransport):
    def send_message(self, chat_id, text, reply_markup=None):
        if chat_id == 2:
            raise TransportError("chat not found")
        if chat_id == 3:
            raise RuntimeError("unexpected")
        super().send_message(chat_id, text, reply_markup)


def test_render_markup():
    assert render_markup() is None
    assert render_markup(actions=[[Action("Join", "joinOrder_GO-1")]]) == {
        "inline_keyboard": [[{"text": "Join", "callback_data": "joinOrder_GO-1"}]]
    }
    assert render_markup(keyboard=[("Logout",)]) == {"keyboard": [["Logout"]], "resize_keyboard": True}


def test_broadcast_isolates_each_recipient():
    transport = BrokenTransport()
    results = Notifier(transport, max_workers=2).broadcast([1, 2, 3, 4, 1], "hello")

    assert results == {1: True, 2: False, 3: False, 4: True}
    assert sorted(message.chat_id for message in transport.sent) == [1, 4]


def test_telegram_client_sends_message():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    client = TelegramClient("TOKEN", base_url="https://telegram.test")
    client._client = httpx.Client(transport=httpx.MockTransport(handler))

    client.send_message(5, "hi", {"keyboard": [["Logout"]]})

    assert str(requests[0].url) == "https://telegram.test/botTOKEN/sendMessage"
    assert b'"chat_id":5' in requests[0].content.replace(b" ", b"")


def test_telegram_client_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"ok": False, "description": "Forbidden: bot was blocked by the user"})

    client = TelegramClient("TOKEN", base_url="https://telegram.test")
    client._client = httpx.Client(transport=httpx.MockTransport(handler))

    notifier = Notifier(client)
    assert notifier.send(5, "hi") is False


def test_telegram_client_rejects_unreadable_reply():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    client = TelegramClient("TOKEN", base_url="https://telegram.test")
    client._client = httpx.Client(transport=httpx.MockTransport(handler))

    with pytest.raises(TransportError):
        client.send_message(5, "hi")
    assert Notifier(client).send(5, "hi") is False
