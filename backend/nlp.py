"""
Rule-based intent and slot extraction for the task agent.

Light keyword matching decides the intent; regexes and dateparser pull out
the structured fields. Everything here is pure: the only outside input is
`now`, which anchors relative dates like "tomorrow".
"""
import re
from datetime import date, datetime, time
from typing import NamedTuple, Optional, Protocol

import dateparser

import datefields
from models import Intent, Slots

# Checked in order; the first match wins
INTENT_PATTERNS = (
    (Intent.ADD_TASK, re.compile(r"\b(add|create|new)\b.*\btask\b")),
    (Intent.UPDATE_TASK, re.compile(r"\b(update|edit|change)\b.*\btask\b")),
    (Intent.DELETE_TASK, re.compile(r"\b(delete|remove)\b.*\btask\b")),
    (Intent.LIST_TASKS, re.compile(r"\b(list|show)\b.*\btasks\b")),
)

QUOTED_RE = re.compile(r"\"([^\"]+)\"|'([^']+)'")
CALLED_RE = re.compile(r"(?:called|named)\s+([\w\s-]{3,})", re.IGNORECASE)
PRIORITY_RE = re.compile(r"\b(high|medium|low)\b\s*priority")
COMPLETED_RE = re.compile(r"\bcompleted\b|\bdone\b")
ID_RE = re.compile(r"\bid\s*[:#]?\s*([a-f0-9]{8,24})\b", re.IGNORECASE)
BRACKETED_ID_RE = re.compile(r"\[([a-f0-9]{8,24})\]", re.IGNORECASE)
YES_RE = re.compile(r"^y(es)?$", re.IGNORECASE)

_WEEKDAY = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_MONTH = (
    r"(?:january|february|march|april|may|june|july|august|september|october|november|december"
    r"|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec)"
)
_ORDINAL = r"(?:st|nd|rd|th)?"

# Phrases handed to dateparser; longest alternatives first
DATE_PHRASE_RE = re.compile(
    r"\b(?:"
    r"(?:the\s+)?day\s+after\s+tomorrow"
    r"|today|tonight|tomorrow"
    r"|in\s+\d+\s+(?:days?|weeks?|months?)"
    r"|next\s+(?:week|month|year)"
    r"|\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}/\d{1,2}(?:/\d{2,4})?(?![\d/])"
    rf"|{_MONTH}\.?\s+\d{{1,2}}{_ORDINAL}(?:,?\s+\d{{4}})?"
    rf"|\d{{1,2}}{_ORDINAL}\s+(?:of\s+)?{_MONTH}(?:,?\s+\d{{4}})?"
    rf"|{_WEEKDAY}"
    r")(?=\b|T\d)",
    re.IGNORECASE,
)

_CLOCK = r"(?:\d{1,2}:[0-5]\d(?:\s*[ap]m\b)?|\d{1,2}\s*[ap]m\b|\bnoon\b|\bmidnight\b)"
TIME_RE = re.compile(rf"(?<![\d:]){_CLOCK}(?!\d)", re.IGNORECASE)
TIME_RANGE_RE = re.compile(
    rf"(?<![\d:])(?P<start>{_CLOCK})\s*(?:-|–|to|until|till)\s*(?P<end>{_CLOCK})(?!\d)",
    re.IGNORECASE,
)
CLOCK_PARTS_RE = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*([ap]m)?", re.IGNORECASE)

DATEPARSER_SETTINGS = {
    "PREFER_DATES_FROM": "future",
    "DATE_ORDER": "MDY",
    "RETURN_AS_TIMEZONE_AWARE": False,
}


class When(NamedTuple):
    """A parsed date/time mention: a bare day, or a start (and maybe end) moment."""
    day: Optional[date] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class Extractor(Protocol):
    def extract(self, text: str, now: Optional[datetime] = None) -> tuple[Intent, Slots]:
        ...


def classify_intent(text: str) -> Intent:
    lowered = text.lower()
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    return Intent.NONE


def parse_clock(text: str) -> Optional[time]:
    """'9:30', '9am', '2:15 pm', 'noon' -> time; None if it is not a valid clock time."""
    lowered = text.strip().lower()
    if lowered == "noon":
        return time(12, 0)
    if lowered == "midnight":
        return time(0, 0)
    m = CLOCK_PARTS_RE.fullmatch(lowered)
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2) or 0)
    meridiem = m.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "pm" and hour < 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0
    if hour > 23:
        return None
    return time(hour, minute)


def parse_day(text: str, now: datetime) -> Optional[date]:
    """Find the first date phrase in the text and resolve it relative to `now`."""
    m = DATE_PHRASE_RE.search(text)
    if not m:
        return None
    phrase = m.group(0).lower()
    if datefields.DATE_ONLY_RE.match(phrase):
        try:
            return date.fromisoformat(phrase)
        except ValueError:
            return None
    if phrase == "tonight":
        phrase = "today"
    parsed = dateparser.parse(
        phrase,
        languages=["en"],
        settings={**DATEPARSER_SETTINGS, "RELATIVE_BASE": now},
    )
    return parsed.date() if parsed else None


def parse_when(text: str, now: datetime) -> Optional[When]:
    """
    Parse the date/time mentioned in free text.

    An explicit clock time (or time range) yields start/end moments on the
    mentioned day, or on today when no day is mentioned. A day on its own
    yields just `day`. Returns None when nothing date-like is present.
    """
    day = parse_day(text, now)

    start_clock = end_clock = None
    m = TIME_RANGE_RE.search(text)
    if m:
        start_clock, end_clock = parse_clock(m.group("start")), parse_clock(m.group("end"))
    if start_clock is None:
        for match in TIME_RE.finditer(text):
            start_clock = parse_clock(match.group(0))
            if start_clock is not None:
                break
        end_clock = None

    if start_clock is None:
        return When(day=day) if day else None

    base = day or now.date()
    end = datetime.combine(base, end_clock) if end_clock else None
    return When(day=day, start=datetime.combine(base, start_clock), end=end)


def extract_title(text: str) -> Optional[str]:
    m = QUOTED_RE.search(text)
    if m:
        return m.group(1) or m.group(2)
    m = CALLED_RE.search(text)
    if m:
        return m.group(1).strip() or None
    return None


def extract_id(text: str) -> Optional[str]:
    m = ID_RE.search(text) or BRACKETED_ID_RE.search(text)
    return m.group(1) if m else None


def extract_slots(text: str, now: datetime) -> Slots:
    lowered = text.lower()
    slots = Slots(title=extract_title(text))

    m = PRIORITY_RE.search(lowered)
    if m:
        slots.priority = m.group(1)

    # Only positive completion language is recognised
    if COMPLETED_RE.search(lowered):
        slots.completed = True

    when = parse_when(text, now)
    if when and when.start:
        slots.start_time = when.start.isoformat()
        if when.end:
            slots.end_time = when.end.isoformat()
    elif when and when.day:
        slots.due_date = datefields.to_due_date(when.day)

    slots.id = extract_id(text)
    return slots


class RuleBasedExtractor:
    """Keyword intent matching plus regex/dateparser slot extraction."""

    def extract(self, text: str, now: Optional[datetime] = None) -> tuple[Intent, Slots]:
        now = now or datetime.now()
        return classify_intent(text), extract_slots(text, now)


def fill_slot(
    slots: Slots,
    text: str,
    slot: str,
    extractor: Optional[Extractor] = None,
    now: Optional[datetime] = None,
) -> Slots:
    """
    Answer one pending slot from a reply.

    The reply is parsed as usual and the slot taken from it when present;
    otherwise the raw reply is used with a per-field fallback.
    """
    now = now or datetime.now()
    raw = text.strip()
    filled = slots.model_copy()

    # A bare HH:MM reply lands on the due date already gathered
    if slot in ("start_time", "end_time") and slots.due_date and datefields.HHMM_RE.match(raw):
        setattr(filled, slot, datefields.combine_with_time(slots.due_date, raw))
        return filled

    _, parsed = (extractor or RuleBasedExtractor()).extract(text, now)
    value = getattr(parsed, slot)
    if value is not None and value != "":
        setattr(filled, slot, value)
        return filled

    if slot == "completed":
        filled.completed = bool(YES_RE.match(raw))
    elif slot == "priority":
        filled.priority = raw.lower()
    elif slot in ("title", "id", "description"):
        setattr(filled, slot, raw)
    elif slot == "due_date":
        day = parse_day(raw, now)
        filled.due_date = datefields.to_due_date(day) if day else raw
    elif slot in ("start_time", "end_time"):
        when = parse_when(raw, now)
        if when and when.start:
            setattr(filled, slot, when.start.isoformat())
        elif when:
            setattr(filled, slot, datefields.to_datetime_iso(when.day))
        else:
            setattr(filled, slot, raw)
    return filled
