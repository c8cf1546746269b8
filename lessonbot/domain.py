from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

# Sent next to the session cookie on every authenticated call.
LOCALE_COOKIE = ("language", "en-US")


@dataclass(frozen=True)
class Slot:
    """One bookable practical lesson as listed by the booking page.

    session_number is the raw value from the page ("3"); the human time window
    comes from Settings.session_labels.
    """

    slot_id: str
    date: dt.date
    session_number: str


@dataclass(frozen=True)
class SessionCredential:
    name: str
    value: str


class LessonBotError(RuntimeError):
    pass


class ConfigError(LessonBotError):
    """Startup configuration is missing or malformed. Fatal."""


class TransportError(LessonBotError):
    """A remote call failed on the network level or returned an unusable response."""


class RemoteRejection(LessonBotError):
    """The booking site answered with an error status to a login or booking request."""


class NotifierError(LessonBotError):
    pass


class ParseError(LessonBotError):
    """The listing page no longer has the expected shape.

    Raised for the whole page, never for a single fragment: a partial slot list
    would silently under-report.
    """

    def __init__(self, message: str, *, fragment_index: int | None = None, field: str | None = None):
        self.fragment_index = fragment_index
        self.field = field
        if fragment_index is not None:
            message = f"fragment #{fragment_index}, field {field!r}: {message}"
        super().__init__(message)
