"""Smoke/integration test for Telegram delivery.

This test talks to the real Telegram API and is skipped by default.
Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to run it:

    TELEGRAM_BOT_TOKEN=123:abc TELEGRAM_CHAT_ID=123 python -m pytest -q -m telegram

With a comma-separated TELEGRAM_CHAT_ID only the first id is messaged.
"""

from __future__ import annotations

import os

import pytest

from lessonbot.telegram_notifier import get_bot_username, send_telegram_message


pytestmark = pytest.mark.telegram


def _first_chat_id(raw: str) -> str:
    return raw.split(",", 1)[0].strip()


@pytest.mark.skipif(
    not os.getenv("TELEGRAM_BOT_TOKEN") or not os.getenv("TELEGRAM_CHAT_ID"),
    reason="Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to run Telegram smoke test",
)
def test_telegram_message_delivery_smoke() -> None:
    assert get_bot_username(bot_token=os.environ["TELEGRAM_BOT_TOKEN"])
    send_telegram_message(
        bot_token=os.environ["TELEGRAM_BOT_TOKEN"],
        chat_id=_first_chat_id(os.environ["TELEGRAM_CHAT_ID"]),
        text="LessonBot: Telegram smoke test (pytest)",
    )
