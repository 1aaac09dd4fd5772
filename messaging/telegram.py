import os
import logging
from dotenv import load_dotenv
from telegram import Bot

load_dotenv()


def _admin_chat():
    token = (os.getenv("TELEGRAM_BOT_TOKEN") or "").strip().strip("'\"")
    chat_id = (os.getenv("TELEGRAM_ADMIN_CHAT_ID") or "").strip()
    return token, chat_id


async def send_admin_alert(text: str):
    """Отправка уведомления администраторам платформы в Telegram."""
    token, chat_id = _admin_chat()
    if not token or not chat_id:
        logging.info("Telegram admin alerts are not configured; skipping: %s", text)
        return
    bot = Bot(token=token)
    logging.info("Sending Telegram admin alert: chat_id=%s", chat_id)
    await bot.send_message(chat_id=chat_id, text=text)
