from __future__ import annotations

import httpx

from lessonbot.domain import NotifierError

TELEGRAM_API_URL = "https://api.telegram.org"


def _call(bot_token: str, method: str, payload: dict | None, timeout_seconds: float, transport: httpx.BaseTransport | None) -> dict:
    url = f"{TELEGRAM_API_URL}/bot{bot_token}/{method}"
    with httpx.Client(timeout=timeout_seconds, transport=transport) as client:
        r = client.post(url, json=payload or {})
        r.raise_for_status()
        data = r.json()
        if not data.get("ok", False):
            raise NotifierError(f"Telegram API error on {method}: {data}")
        return data


def send_telegram_message(
    *,
    bot_token: str,
    chat_id: str,
    text: str,
    timeout_seconds: float = 20.0,
    transport: httpx.BaseTransport | None = None,
) -> None:
    payload = {
        "chat_id": chat_id,
        "text": text,
        "disable_web_page_preview": True,
    }
    _call(bot_token, "sendMessage", payload, timeout_seconds, transport)


def get_bot_username(*, bot_token: str, timeout_seconds: float = 20.0, transport: httpx.BaseTransport | None = None) -> str:
    """Check the token with getMe; used once at startup."""
    data = _call(bot_token, "getMe", None, timeout_seconds, transport)
    return str(data.get("result", {}).get("username", ""))
