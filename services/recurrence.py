"""Recurrence rules on top of dateutil's RFC 5545 implementation.

A rule is stored as its textual form: a ``DTSTART:`` header line followed by
an ``RRULE:`` body, exactly what ``build_rrule_string`` produces and
``parse_rrule`` reads back. Timezone-aware start dates are normalized to UTC
and serialized with a ``Z`` suffix; naive start dates stay floating.
"""
import logging
from datetime import datetime, timezone
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule, rruleset, rrulestr
from models.transaction_filters import TimeRange

logger = logging.getLogger(__name__)

FREQ_MAP = {
    "daily": DAILY,
    "weekly": WEEKLY,
    "biweekly": WEEKLY,
    "monthly": MONTHLY,
    "yearly": YEARLY,
}

_RFC_DATETIME = "%Y%m%dT%H%M%S"


class InvalidRuleError(ValueError):
    """A recurrence rule that cannot be built or parsed."""


def _interval(frequency: str) -> int:
    return 2 if frequency == "biweekly" else 1


def _to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _align(dt: datetime, rule: rrule) -> datetime:
    """Bring dt to the same awareness as the rule's start so they compare."""
    dtstart = getattr(rule, "_dtstart", None)
    rule_is_aware = dtstart is not None and dtstart.tzinfo is not None
    if rule_is_aware and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    if not rule_is_aware and dt.tzinfo is not None:
        return _to_utc_naive(dt)
    return dt


def _validate(frequency: str, end_date: datetime | None, count: int | None):
    if frequency not in FREQ_MAP:
        raise InvalidRuleError(f"Unknown frequency: {frequency!r}")
    if end_date is not None and count is not None:
        raise InvalidRuleError("end_date and count are mutually exclusive")
    if count is not None and count <= 0:
        raise InvalidRuleError("count must be positive")


def build_rule(
    frequency: str,
    start_date: datetime,
    end_date: datetime | None = None,
    count: int | None = None,
) -> rrule:
    """Construct the rule object. Aware dates are converted to UTC."""
    _validate(frequency, end_date, count)
    aware = start_date.tzinfo is not None
    dtstart = start_date.astimezone(timezone.utc) if aware else start_date
    until = None
    if end_date is not None:
        until = end_date.astimezone(timezone.utc) if end_date.tzinfo else end_date
        if aware and until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        elif not aware and until.tzinfo is not None:
            until = _to_utc_naive(until)
    return rrule(
        FREQ_MAP[frequency],
        interval=_interval(frequency),
        dtstart=dtstart,
        until=until,
        count=count,
    )


def build_rrule_string(
    frequency: str,
    start_date: datetime,
    end_date: datetime | None = None,
    count: int | None = None,
) -> str:
    """Serialize a rule as 'DTSTART:…' + newline + 'RRULE:…'.

    Raises InvalidRuleError when both end_date and count are given.
    """
    naive_start = _to_utc_naive(start_date)
    naive_end = _to_utc_naive(end_date) if end_date is not None else None
    text = str(build_rule(frequency, naive_start, naive_end, count))
    if start_date.tzinfo is None:
        return text
    # dateutil drops the zone when printing; UTC values get the RFC 'Z' marker.
    start_str = naive_start.strftime(_RFC_DATETIME)
    text = text.replace(f"DTSTART:{start_str}", f"DTSTART:{start_str}Z", 1)
    if naive_end is not None:
        until_str = naive_end.strftime(_RFC_DATETIME)
        text = text.replace(f"UNTIL={until_str}", f"UNTIL={until_str}Z", 1)
    return text


def _parse_rule_body(rule_string: str) -> rrule:
    """Parse only the RRULE body. Loses the DTSTART header."""
    body = rule_string.strip()
    for line in body.splitlines():
        if line.upper().startswith("RRULE:"):
            body = line
            break
    return rrulestr(body)


def parse_rrule(rule_string: str) -> rrule:
    """Parse a stored rule, preserving its DTSTART header when present.

    ``rrulestr`` reads the full RFC text (header + body) and is tried first.
    Only if it fails do we fall back to parsing the body alone.
    """
    try:
        result = rrulestr(rule_string)
        if isinstance(result, rruleset):
            rules = getattr(result, "_rrule", [])
            if rules:
                return rules[0]
            raise ValueError("rule set carries no RRULE")
        return result
    except Exception as exc:
        logger.debug("Full rule parse failed (%s); retrying with RRULE body only", exc)
        try:
            return _parse_rule_body(rule_string)
        except Exception as fallback_exc:
            raise InvalidRuleError(f"Unparseable recurrence rule: {rule_string!r}") from fallback_exc


def count_occurrences_between(start_date: datetime, end_date: datetime, frequency: str) -> int:
    """How many times frequency recurs in [start_date, end_date], both inclusive."""
    if frequency not in FREQ_MAP:
        raise InvalidRuleError(f"Unknown frequency: {frequency!r}")
    if start_date.tzinfo is None and end_date.tzinfo is not None:
        end_date = _to_utc_naive(end_date)
    elif start_date.tzinfo is not None and end_date.tzinfo is None:
        end_date = end_date.replace(tzinfo=timezone.utc)
    if end_date < start_date:
        return 0
    rule = rrule(
        FREQ_MAP[frequency],
        interval=_interval(frequency),
        dtstart=start_date,
        until=end_date,
    )
    return rule.count()


def occurrences_between(rule_string: str, start: datetime, end: datetime) -> list[datetime]:
    rule = parse_rrule(rule_string)
    start, end = _align(start, rule), _align(end, rule)
    if end < start:
        return []
    return rule.between(start, end, inc=True)


def count_rule_occurrences(rule_string: str, start: datetime, end: datetime) -> int:
    return len(occurrences_between(rule_string, start, end))


def next_absolute_occurrence(
    rule_strings: list[str],
    time_range: TimeRange,
    anchor: datetime,
) -> datetime | None:
    """First occurrence strictly after anchor inside time_range, or None.

    When anchor precedes the range the search includes range.start itself;
    otherwise the occurrence at anchor is skipped. Only the first rule is used.
    """
    if not rule_strings:
        return None
    rule = parse_rrule(rule_strings[0])
    range_start = _align(time_range.start, rule)
    range_end = _align(time_range.end, rule)
    anchor = _align(anchor, rule)
    if anchor > range_end:
        return None

    if anchor < range_start:
        nxt = rule.after(range_start, inc=True)
    else:
        nxt = rule.after(anchor, inc=False)
    if nxt is None or nxt > range_end:
        return None
    return nxt
