import requests

import telegram_alert
from models import DeliveryStatus
from telegram_alert import TelegramNotifier


class FakeResponse:
    def __init__(self, status_code, description=""):
        self.status_code = status_code
        self.description = description
        self.text = f'{{"ok": false, "description": "{description}"}}'

    def json(self):
        return {"ok": self.status_code == 200, "description": self.description}


def fake_post(monkeypatch, responses):
    calls = []

    def post(url, data=None, timeout=None):
        calls.append({"url": url, "data": data, "timeout": timeout})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(telegram_alert.requests, "post", post)
    return calls


def test_successful_send(monkeypatch):
    calls = fake_post(monkeypatch, [FakeResponse(200)])

    status = TelegramNotifier("123:abc").notify("42", "*hello*")

    assert status is DeliveryStatus.SUCCESS
    assert calls[0]["url"] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert calls[0]["data"]["chat_id"] == "42"
    assert calls[0]["data"]["parse_mode"] == "Markdown"


def test_blocked_bot_is_unreachable(monkeypatch):
    fake_post(monkeypatch, [FakeResponse(403, "Forbidden: bot was blocked by the user")])

    assert TelegramNotifier("t").notify("42", "x") is DeliveryStatus.UNREACHABLE


def test_chat_not_found_is_unreachable(monkeypatch):
    fake_post(monkeypatch, [FakeResponse(400, "Bad Request: chat not found")])

    assert TelegramNotifier("t").notify("42", "x") is DeliveryStatus.UNREACHABLE


def test_markdown_error_falls_back_to_plain_text(monkeypatch):
    calls = fake_post(monkeypatch, [
        FakeResponse(400, "Bad Request: can't parse entities: unclosed bold"),
        FakeResponse(200),
    ])

    status = TelegramNotifier("t").notify("42", "*broken")

    assert status is DeliveryStatus.SUCCESS
    assert len(calls) == 2
    assert "parse_mode" not in calls[1]["data"]


def test_server_error_is_retryable(monkeypatch):
    fake_post(monkeypatch, [FakeResponse(500, "Internal Server Error")])

    assert TelegramNotifier("t").notify("42", "x") is DeliveryStatus.ERROR


def test_network_error_is_retryable(monkeypatch):
    fake_post(monkeypatch, [requests.ConnectionError("connection reset")])

    assert TelegramNotifier("t").notify("42", "x") is DeliveryStatus.ERROR


def test_missing_token_never_calls_api(monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    calls = fake_post(monkeypatch, [])

    assert TelegramNotifier().notify("42", "x") is DeliveryStatus.ERROR
    assert calls == []
