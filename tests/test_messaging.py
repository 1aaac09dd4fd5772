import asyncio

import httpx

import messaging.telegram as telegram
from messaging.whatsapp import clean_phone, send_whatsapp_message
from washop.services.best_effort import best_effort


def test_clean_phone():
    assert clean_phone("+234 801-111-1111") == "+2348011111111"
    assert clean_phone("2348011111111") == "+2348011111111"


def test_whatsapp_skipped_without_twilio():
    assert asyncio.run(send_whatsapp_message("+2348011111111", "hi")) is None


def test_whatsapp_sends_through_twilio(monkeypatch):
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setenv("TWILIO_WHATSAPP_NUMBER", "+14155238886")
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = request.content.decode()
        return httpx.Response(201, json={"sid": "SM1"})

    sid = asyncio.run(
        send_whatsapp_message("0801 111 1111", "Your code is ABCD1234", transport=httpx.MockTransport(handler))
    )

    assert sid == "SM1"
    assert seen["url"].endswith("/Accounts/AC123/Messages.json")
    assert "whatsapp%3A%2B14155238886" in seen["body"]


def test_admin_alert_skipped_without_token():
    assert asyncio.run(telegram.send_admin_alert("hello")) is None


def test_best_effort_swallows_failures():
    async def boom():
        raise RuntimeError("gateway down")

    async def fine():
        return "ok"

    assert asyncio.run(best_effort("explode", boom())) is False
    assert asyncio.run(best_effort("succeed", fine())) is True
