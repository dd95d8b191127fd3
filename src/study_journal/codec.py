"""Markdown rendering and tolerant parsing of session records.

A stored document is a front-matter header of quoted ``key: "value"`` fields
followed by three headed free-text sections. Parsing never raises: a missing
or malformed field degrades to its zero value so that old or half-written
files cannot break history listing.
"""

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

SECTIONS = (
    ("acquisition", "Acquisition"),
    ("debt", "Debt"),
    ("next_action", "Next Action"),
)
"""tuple: (attribute, heading) pairs in document order."""

_HEADING_RE = re.compile(
    r"^##[ \t]+(" + "|".join(re.escape(h) for _, h in SECTIONS) + r")[ \t]*$",
    re.MULTILINE,
)


def _field_re(key: str) -> re.Pattern[str]:
    # Greedy so embedded quotes stay inside the value.
    return re.compile(rf'^[ \t]*{key}[ \t]*:[ \t]*"(.*)"[ \t]*$', re.MULTILINE)


_DATE_RE = _field_re("date")
_TOPIC_RE = _field_re("topic")
_DURATION_RE = _field_re("duration")


def _now() -> datetime.datetime:
    return datetime.datetime.now().replace(microsecond=0)


def _parse_timestamp(value: str) -> datetime.datetime | None:
    """Parses an ISO-8601 string into a naive local datetime."""
    try:
        ts = datetime.datetime.fromisoformat(value.strip())
        if ts.tzinfo is not None:
            # Offsets near datetime.min/max overflow on conversion.
            ts = ts.astimezone().replace(tzinfo=None)
    except (ValueError, TypeError, OverflowError, OSError):
        return None
    return ts.replace(microsecond=0)


def _is_ascii_digits(value: str) -> bool:
    return value.isascii() and value.isdigit()


@dataclass
class SessionRecord:
    """One completed study session.

    Attributes:
        topic (str): What was studied. Non-empty, single line.
        started_at (datetime.datetime): Local wall-clock start, second precision.
        duration_minutes (int): Session length; must be positive.
        acquisition (str): What was understood.
        debt (str): What remains unclear.
        next_action (str): What to do next.
    """

    topic: str
    started_at: datetime.datetime
    duration_minutes: int
    acquisition: str = ""
    debt: str = ""
    next_action: str = ""

    def __post_init__(self) -> None:
        self.topic = (self.topic or "").strip()
        if not self.topic:
            raise ValueError("Topic must not be empty.")
        if "\n" in self.topic or "\r" in self.topic:
            raise ValueError("Topic must be a single line.")
        if isinstance(self.duration_minutes, bool) or not isinstance(
            self.duration_minutes, int
        ):
            raise ValueError("Duration must be a whole number of minutes.")
        if self.duration_minutes <= 0:
            raise ValueError("Duration must be greater than zero.")
        self.started_at = self.started_at.replace(microsecond=0)
        self.acquisition = (self.acquisition or "").strip()
        self.debt = (self.debt or "").strip()
        self.next_action = (self.next_action or "").strip()

    @property
    def commit_message(self) -> str:
        return f"[Study] {self.topic} ({self.duration_minutes}min)"

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SessionRecord":
        """Builds a record from the UI's loosely-typed request payload.

        Accepts ``duration`` or ``durationMinutes`` (int or numeric string)
        and ``date`` or ``startedAt`` (ISO-8601, defaults to now).

        Raises:
            ValueError: If the payload does not describe a valid session.
        """
        raw_duration = data.get("durationMinutes", data.get("duration"))
        if isinstance(raw_duration, str):
            raw_duration = raw_duration.strip()
            if not _is_ascii_digits(raw_duration):
                raise ValueError(f"Invalid duration '{raw_duration}'")
            raw_duration = int(raw_duration)
        if raw_duration is None:
            raise ValueError("Duration is required.")

        raw_date = data.get("startedAt", data.get("date"))
        if raw_date:
            started_at = _parse_timestamp(str(raw_date))
            if started_at is None:
                raise ValueError(f"Invalid date '{raw_date}'")
        else:
            started_at = _now()

        return cls(
            topic=str(data.get("topic") or ""),
            started_at=started_at,
            duration_minutes=raw_duration,
            acquisition=str(data.get("acquisition") or ""),
            debt=str(data.get("debt") or ""),
            next_action=str(data.get("nextAction") or ""),
        )


@dataclass
class PartialSessionRecord:
    """A best-effort view of a stored document; every field may be empty."""

    date: str = ""
    topic: str = ""
    duration_minutes: int = 0
    acquisition: str = ""
    debt: str = ""
    next_action: str = ""

    @property
    def started_at(self) -> datetime.datetime | None:
        """The header date as a naive local datetime, if it parses."""
        if not self.date:
            return None
        return _parse_timestamp(self.date)


def render(record: SessionRecord) -> str:
    """Renders a session record as a Markdown document.

    Args:
        record (SessionRecord): The session to render.

    Returns:
        str: The document text, in fixed field order.
    """
    header = "\n".join(
        [
            "---",
            f'date: "{record.started_at.isoformat(timespec="seconds")}"',
            f'topic: "{record.topic}"',
            f'duration: "{record.duration_minutes}"',
            "---",
        ]
    )
    body = "\n\n".join(
        f"## {heading}\n{getattr(record, attr)}" for attr, heading in SECTIONS
    )
    return f"{header}\n\n{body}\n"


def _extract(pattern: re.Pattern[str], text: str) -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def _extract_sections(text: str) -> dict[str, str]:
    by_heading = {heading: attr for attr, heading in SECTIONS}
    found: dict[str, str] = {}

    matches = list(_HEADING_RE.finditer(text))
    for i, match in enumerate(matches):
        attr = by_heading[match.group(1)]
        if attr in found:
            continue  # first occurrence wins
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        found[attr] = text[match.end() : end].strip()
    return found


def parse(text: str) -> PartialSessionRecord:
    """Extracts whatever fields a document contains.

    Args:
        text (str): The raw document.

    Returns:
        PartialSessionRecord: Parsed fields, with zero values for anything
        missing or malformed.
    """
    if not isinstance(text, str):
        return PartialSessionRecord()

    # Normalize Windows line endings so anchors behave.
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    # Header fields are only searched above the first section heading.
    first_heading = _HEADING_RE.search(text)
    header = text[: first_heading.start()] if first_heading else text

    raw_duration = _extract(_DURATION_RE, header)
    if _is_ascii_digits(raw_duration):
        duration = int(raw_duration)
    else:
        if raw_duration:
            logger.debug(f"Unparseable duration '{raw_duration}'")
        duration = 0

    sections = _extract_sections(text)
    return PartialSessionRecord(
        date=_extract(_DATE_RE, header),
        topic=_extract(_TOPIC_RE, header),
        duration_minutes=duration,
        acquisition=sections.get("acquisition", ""),
        debt=sections.get("debt", ""),
        next_action=sections.get("next_action", ""),
    )
