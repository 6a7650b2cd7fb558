"""Tests for the WhatsApp Cloud API notifier."""

from types import SimpleNamespace

import pytest
import requests

from storefront.notify import whatsapp_notify
from storefront.notify.whatsapp_notify import WhatsAppNotifier


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = "Bad Request" if status_code >= 400 else "OK"
        self._data = data or {}

    def json(self):
        return self._data


@pytest.fixture
def calls(monkeypatch):
    sent = []

    def fake_post(url, json=None, headers=None, timeout=None):
        sent.append({"url": url, "json": json, "headers": headers})
        return FakeResponse(200, {"messages": [{"id": "wamid.1"}]})

    monkeypatch.setattr(whatsapp_notify.requests, "post", fake_post)
    return sent


def make_notifier(**kwargs):
    kwargs.setdefault("access_token", "tok")
    kwargs.setdefault("phone_number_id", "12345")
    return WhatsAppNotifier(**kwargs)


def test_payload_shape():
    payload = make_notifier(template_name="order_update").build_payload("9190000", ["A1", "Cancelled"])
    assert payload == {
        "messaging_product": "whatsapp",
        "to": "9190000",
        "type": "template",
        "template": {
            "name": "order_update",
            "language": {"code": "en_US"},
            "components": [{
                "type": "body",
                "parameters": [
                    {"type": "text", "text": "A1"},
                    {"type": "text", "text": "Cancelled"},
                ],
            }],
        },
    }


def test_no_components_without_parameters():
    payload = make_notifier(language="hi").build_payload("9190000", [])
    assert "components" not in payload["template"]
    assert payload["template"]["language"] == {"code": "hi"}


def test_status_change_posts_to_graph_api(calls):
    notifier = make_notifier(api_version="v20.0")
    order = SimpleNamespace(id="A1", status="REFUNDED", customer_phone="919800000000")

    assert notifier.notify_order_status_changed(order) is True

    assert len(calls) == 1
    assert calls[0]["url"] == "https://graph.facebook.com/v20.0/12345/messages"
    assert calls[0]["headers"]["Authorization"] == "Bearer tok"
    params = calls[0]["json"]["template"]["components"][0]["parameters"]
    assert [p["text"] for p in params] == ["A1", "Refunded"]


def test_disabled_without_credentials(calls):
    notifier = make_notifier(access_token="")
    order = SimpleNamespace(id="A1", status="CANCELLED", customer_phone="919800000000")
    assert notifier.notify_order_status_changed(order) is False
    assert calls == []


def test_skips_orders_without_phone(calls):
    order = SimpleNamespace(id="A1", status="CANCELLED", customer_phone=None)
    assert make_notifier().notify_order_status_changed(order) is False
    assert calls == []


def test_api_error_is_swallowed(monkeypatch, caplog):
    monkeypatch.setattr(
        whatsapp_notify.requests, "post",
        lambda *a, **k: FakeResponse(400, {"error": {"message": "Template name does not exist"}}),
    )
    assert make_notifier().send("9190000", ["A1"]) is False
    assert "Template name does not exist" in caplog.text


def test_network_error_is_swallowed(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(whatsapp_notify.requests, "post", boom)
    assert make_notifier().send("9190000", ["A1"]) is False
