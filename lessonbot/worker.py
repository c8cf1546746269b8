from __future__ import annotations

import datetime as dt
import logging
import random
import threading
from dataclasses import dataclass
from typing import Callable

from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from lessonbot.config import Settings
from lessonbot.domain import NotifierError, RemoteRejection, SessionCredential, Slot, TransportError
from lessonbot.eligibility import eligible_slots
from lessonbot.listing_parser import extract_slots
from lessonbot.session_client import SessionClient
from lessonbot.telegram_notifier import send_telegram_message

logger = logging.getLogger(__name__)

DelayProvider = Callable[[], int]


@dataclass(frozen=True)
class CycleResult:
    listed: int
    eligible: int
    booked: int
    rejected: int = 0


def format_slot_date(day: dt.date) -> str:
    # 5 Jun 2025 (Thu)
    return f"{day.day} {day:%b %Y (%a)}"


def format_delay(seconds: int) -> str:
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}m{rest}s"


def random_delay_seconds(settings: Settings) -> int:
    # Irregular cadence so the polling does not look like a fixed-interval bot.
    return random.randint(settings.retry_min_seconds, settings.retry_max_seconds)


def _broadcast_telegram(settings: Settings, text: str, chat_ids: tuple[str, ...] | None = None) -> None:
    errors: list[tuple[str, Exception]] = []

    for chat_id in chat_ids if chat_ids is not None else settings.telegram_chat_ids:
        try:
            send_telegram_message(
                bot_token=settings.telegram_bot_token,
                chat_id=chat_id,
                text=text,
            )
        except Exception as e:
            # Best-effort: don't stop sending to other chat_ids.
            logger.warning("Failed to send telegram message to chat_id=%s (%s: %s)", chat_id, type(e).__name__, e)
            errors.append((chat_id, e))

    if errors:
        failed = ", ".join([cid for cid, _ in errors])
        raise NotifierError(f"Failed to send telegram message to some recipients: {failed}")


def _send_status_message(settings: Settings, text: str) -> None:
    _broadcast_telegram(settings, text)


def _send_admin_message(settings: Settings, text: str) -> None:
    # Failures are never shown to regular recipients.
    if settings.telegram_admin_chat_id is None:
        return
    _broadcast_telegram(settings, text, chat_ids=(settings.telegram_admin_chat_id,))


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _log_before_attempt(retry_state: RetryCallState) -> None:
    logger.info("Attempt %s: start", retry_state.attempt_number)


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        reason = _short_exc(retry_state)
        if reason:
            logger.warning("Attempt %s: failed (%s)", retry_state.attempt_number, reason)
        else:
            logger.warning("Attempt %s: failed", retry_state.attempt_number)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Pausing before next attempt (reason: %s)", _short_exc(retry_state))
        return
    logger.info(
        "Pausing %.0f s before attempt %s (reason: %s)",
        sleep_seconds,
        retry_state.attempt_number + 1,
        _short_exc(retry_state),
    )


def _fetch_listing(settings: Settings, client: SessionClient) -> tuple[SessionCredential, str]:
    # A fresh credential every attempt: sessions are never carried over.
    logger.info("Fetching session cookie")
    credential = client.open_session()

    logger.info("Logging in")
    client.log_in(settings.identity, settings.secret, credential)

    logger.info("Fetching slots")
    page = client.fetch_listing(settings.account_id, credential, settings.wanted)
    return credential, page


def _fetch_listing_with_retry(settings: Settings, client: SessionClient) -> tuple[SessionCredential, str]:
    decorated = retry(
        retry=retry_if_exception_type(TransportError),
        stop=stop_after_attempt(settings.check_retry_attempts),
        wait=wait_exponential(multiplier=2, min=2, max=4),
        before=_log_before_attempt,
        after=_log_after_attempt,
        before_sleep=_log_before_sleep,
        reraise=True,
    )(_fetch_listing)

    return decorated(settings, client)


def _book_and_announce(settings: Settings, client: SessionClient, credential: SessionCredential, slot: Slot) -> bool:
    logger.info("Booking slot_id=%s (%s session %s)", slot.slot_id, slot.date.isoformat(), slot.session_number)
    try:
        client.submit_booking(settings.account_id, slot.slot_id, credential)
        booked = True
    except RemoteRejection as e:
        logger.warning("Booking of slot_id=%s rejected (%s)", slot.slot_id, e)
        booked = False

    outcome = "and booked" if booked else "booking rejected"
    text = (
        f"Slot available ({outcome}) on {format_slot_date(slot.date)} "
        f"{settings.session_label(slot.session_number)}"
    )
    try:
        _broadcast_telegram(settings, text)
    except NotifierError as e:
        # Keep booking the remaining slots.
        logger.warning("Slot announcement not fully delivered (%s)", e)
    return booked


def run_cycle(settings: Settings, *, now: dt.datetime | None = None) -> CycleResult:
    """One poll cycle: session, login, listing, parse, filter, then book and announce."""
    try:
        with SessionClient(base_url=settings.base_url, timeout_seconds=settings.http_timeout_seconds) as client:
            credential, page = _fetch_listing_with_retry(settings, client)

            logger.info("Parsing slots")
            slots = extract_slots(page)

            logger.info("Extracting valid slots")
            valid = eligible_slots(
                slots,
                now=now or dt.datetime.now(),
                lookahead_days=settings.lookahead_days,
                min_lead_hours=settings.min_lead_hours,
            )
            logger.info("Slots: listed=%d eligible=%d", len(slots), len(valid))

            booked = 0
            for slot in valid:
                if _book_and_announce(settings, client, credential, slot):
                    booked += 1

        logger.info("Finished getting slots")
        return CycleResult(listed=len(slots), eligible=len(valid), booked=booked, rejected=len(valid) - booked)

    except Exception as e:
        logger.error("Cycle failed (%s: %s)", type(e).__name__, e)
        try:
            _send_admin_message(settings, text=f"Check failed.\nReason: {type(e).__name__}: {e}")
        except Exception:
            logger.warning("Failed to send telegram admin message", exc_info=True)
        raise


def _summary_text(result: CycleResult | None, delay_seconds: int) -> str:
    countdown = f"Retrigger in: {format_delay(delay_seconds)}"
    if result is None:
        return countdown
    return (
        f"Check finished: {result.listed} slots listed, {result.eligible} eligible, "
        f"{result.booked} booked.\n{countdown}"
    )


def run_forever(
    settings: Settings,
    *,
    delay_provider: DelayProvider | None = None,
    stop_event: threading.Event | None = None,
) -> None:
    if delay_provider is None:
        delay_provider = lambda: random_delay_seconds(settings)  # noqa: E731
    if stop_event is None:
        stop_event = threading.Event()

    logger.info(
        "Worker started. Delay=%s..%ss lookahead=%sd",
        settings.retry_min_seconds,
        settings.retry_max_seconds,
        settings.lookahead_days,
    )
    while not stop_event.is_set():
        result: CycleResult | None = None
        try:
            result = run_cycle(settings)
        except Exception as e:
            # Already logged in run_cycle(); the next cycle starts after the usual pause.
            logger.error("Cycle failed in run_forever (%s: %s)", type(e).__name__, e)

        delay = delay_provider()
        try:
            _send_status_message(settings, text=_summary_text(result, delay))
        except Exception:
            logger.warning("Failed to send telegram status message", exc_info=True)

        logger.info("Sleeping %ss", delay)
        if stop_event.wait(delay):
            break

    logger.info("Worker stopped")
