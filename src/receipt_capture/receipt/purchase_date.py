from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date


logger = logging.getLogger(__name__)

_MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


@dataclass(frozen=True, slots=True)
class DateRule:
    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], date | None]


def _calendar_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_ymd(m: re.Match[str]) -> date | None:
    return _calendar_date(int(m.group("year")), int(m.group("month")), int(m.group("day")))


def _from_dmy(m: re.Match[str]) -> date | None:
    year = int(m.group("year"))
    if year < 100:
        year += 2000
    return _calendar_date(year, int(m.group("month")), int(m.group("day")))


def month_from_name(value: str) -> int | None:
    token = value.casefold().rstrip(".")
    if len(token) < 3:
        return None
    for idx, full in enumerate(_MONTHS, start=1):
        if full.startswith(token):
            return idx
    return None


def _from_day_month_name(m: re.Match[str]) -> date | None:
    month = month_from_name(m.group("month"))
    if month is None:
        return None
    return _calendar_date(int(m.group("year")), month, int(m.group("day")))


# Priority order matters: the first rule yielding a valid date on a line wins.
DATE_RULES: tuple[DateRule, ...] = (
    DateRule(
        name="iso_ymd",
        pattern=re.compile(r"(?<!\d)(?P<year>\d{4})[-/.](?P<month>\d{1,2})[-/.](?P<day>\d{1,2})(?!\d)"),
        build=_from_ymd,
    ),
    DateRule(
        name="dmy",
        pattern=re.compile(r"(?<!\d)(?P<day>\d{1,2})[-/.](?P<month>\d{1,2})[-/.](?P<year>\d{4}|\d{2})(?!\d)"),
        build=_from_dmy,
    ),
    DateRule(
        name="day_month_name",
        pattern=re.compile(r"(?<!\d)(?P<day>\d{1,2})\s+(?P<month>[A-Za-z]{3,9})\.?,?\s+(?P<year>\d{4})(?!\d)"),
        build=_from_day_month_name,
    ),
)


def parse_date_in_line(line: str, rules: Sequence[DateRule] = DATE_RULES) -> tuple[date, str] | None:
    for rule in rules:
        for m in rule.pattern.finditer(line):
            parsed = rule.build(m)
            if parsed is not None:
                return parsed, rule.name
    return None


def find_purchase_date(lines: Sequence[str], rules: Sequence[DateRule] = DATE_RULES) -> tuple[date, int] | None:
    """Return the first calendar-valid date scanning top to bottom, with its line index."""
    for idx, line in enumerate(lines):
        hit = parse_date_in_line(line, rules)
        if hit is None:
            continue
        parsed, rule_name = hit
        logger.debug("Purchase date %s from rule %s on line %d", parsed.isoformat(), rule_name, idx)
        return parsed, idx
    return None


def extract_purchase_date(lines: Sequence[str]) -> date | None:
    found = find_purchase_date(lines)
    return found[0] if found else None
