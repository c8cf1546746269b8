from __future__ import annotations

import logging

import httpx

from lessonbot.config import DEFAULT_BASE_URL, WantedFilters
from lessonbot.domain import LOCALE_COOKIE, RemoteRejection, SessionCredential, TransportError

logger = logging.getLogger(__name__)

SESSION_PATH = "/bbdc_web/newheader.asp"
LOGIN_PATH = "/bbdc_web/header2.asp"
LISTING_PATH = "/b-2-pLessonBooking1.asp"
BOOKING_PATH = "/b-2-pLessonBookingDetails.asp"

_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0 Safari/537.36"


def login_form(identity: str, secret: str) -> dict[str, str]:
    return {
        "txtNRIC": identity,
        "txtpassword": secret,
        "btnLogin": "ACCESS+TO+BOOKING+SYSTEM",
    }


def listing_form(account_id: str, wanted: WantedFilters) -> dict[str, str | list[str]]:
    # List values are sent as repeated fields: Month=Jun&Month=Jul
    return {
        "accId": account_id,
        "Month": list(wanted.months),
        "Session": list(wanted.sessions),
        "Day": list(wanted.days),
        "defPLVenue": "1",
        "optVenue": "1",
    }


def booking_form(account_id: str, slot_id: str) -> dict[str, str]:
    return {"accId": account_id, "slot": slot_id}


class SessionClient:
    """Talks to the booking site for a single poll cycle.

    Only transport failures and HTTP error statuses are detected. A wrong
    password or a refused booking that still comes back as 200 goes unnoticed:
    the response body is not inspected.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
            transport=transport,
        )

    def __enter__(self) -> SessionClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

    def _use_credential(self, credential: SessionCredential) -> None:
        # The jar holds exactly the cycle's credential plus the locale cookie,
        # so redirected requests (rebuilt from the jar by httpx) carry both.
        host = self._client.base_url.host
        locale_name, locale_value = LOCALE_COOKIE
        self._client.cookies.clear()
        self._client.cookies.set(credential.name, credential.value, domain=host)
        self._client.cookies.set(locale_name, locale_value, domain=host)

    def _post_form(self, path: str, form: dict, credential: SessionCredential) -> httpx.Response:
        self._use_credential(credential)
        return self._send("POST", path, data=form)

    def open_session(self) -> SessionCredential:
        # The site only hands out a session cookie to a client that sends none.
        self._client.cookies.clear()
        r = self._send("GET", SESSION_PATH)
        if r.is_error:
            raise TransportError(f"GET {SESSION_PATH} returned HTTP {r.status_code}")

        cookie = next(iter(r.cookies.jar), None)
        if cookie is None or cookie.value is None:
            raise TransportError(f"GET {SESSION_PATH} did not set a session cookie")

        logger.debug("Got session cookie %s", cookie.name)
        return SessionCredential(name=cookie.name, value=cookie.value)

    def log_in(self, identity: str, secret: str, credential: SessionCredential) -> None:
        r = self._post_form(LOGIN_PATH, login_form(identity, secret), credential)
        if r.is_error:
            raise RemoteRejection(f"Login refused with HTTP {r.status_code}")

    def fetch_listing(self, account_id: str, credential: SessionCredential, wanted: WantedFilters) -> str:
        logger.info(
            "Looking through booking form for months=%s sessions=%s days=%s (where 7 = Saturday etc.)",
            " ".join(wanted.months),
            " ".join(wanted.sessions),
            " ".join(wanted.days),
        )
        r = self._post_form(LISTING_PATH, listing_form(account_id, wanted), credential)
        if r.is_error:
            raise TransportError(f"Listing request returned HTTP {r.status_code}")
        return r.text

    def submit_booking(self, account_id: str, slot_id: str, credential: SessionCredential) -> None:
        r = self._post_form(BOOKING_PATH, booking_form(account_id, slot_id), credential)
        if r.is_error:
            raise RemoteRejection(f"Booking of slot {slot_id} refused with HTTP {r.status_code}")
