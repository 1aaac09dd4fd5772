"""Outbound WhatsApp messages through the Twilio REST API."""

import os
import re
import logging

import httpx
from dotenv import load_dotenv

load_dotenv()

TWILIO_API = "https://api.twilio.com/2010-04-01"


def clean_phone(phone: str) -> str:
    digits = re.sub(r"[^0-9+]", "", phone or "")
    return digits if digits.startswith("+") else f"+{digits}"


async def send_whatsapp_message(phone: str, text: str, transport: httpx.AsyncBaseTransport = None):
    account_sid = os.getenv("TWILIO_ACCOUNT_SID")
    auth_token = os.getenv("TWILIO_AUTH_TOKEN")
    sender = os.getenv("TWILIO_WHATSAPP_NUMBER")
    if not account_sid or not auth_token or not sender:
        logging.info("Twilio is not configured; WhatsApp message to %s not sent", phone)
        return None

    async with httpx.AsyncClient(timeout=15, transport=transport) as client:
        response = await client.post(
            f"{TWILIO_API}/Accounts/{account_sid}/Messages.json",
            auth=(account_sid, auth_token),
            data={
                "To": f"whatsapp:{clean_phone(phone)}",
                "From": f"whatsapp:{sender}",
                "Body": text,
            },
        )
    response.raise_for_status()
    sid = response.json().get("sid")
    logging.info("WhatsApp message sent to %s (sid=%s)", clean_phone(phone), sid)
    return sid
