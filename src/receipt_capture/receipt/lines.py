from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache


_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_WS_RUN = re.compile(r"\s{2,}")

# 2-3 decimals after the last separator; never part of a longer dotted number like 12.03.2023
AMOUNT_TOKEN = re.compile(r"(?<![\d.,])\d+(?:[.,]\d{3})*[.,]\d{2,3}(?![.,]?\d)")
_SEPARATORS = re.compile(r"[.,]")
_NOT_NUMERIC = re.compile(r"[^0-9.,]")


def normalize_lines(raw: object) -> tuple[str, ...]:
    if not isinstance(raw, str):
        return ()

    lines: list[str] = []
    for ln in _LINE_BREAK.split(raw):
        ln = ln.strip().replace("*", "")
        ln = _WS_RUN.sub(" ", ln).strip()
        if ln:
            lines.append(ln)
    return tuple(lines)


def parse_amount(value: str) -> float | None:
    """Parse an OCR price token such as ``1,234.56``, ``79,050`` or ``*3.50``.

    The last separator is taken as the decimal point; earlier ones are
    thousands separators and are dropped.
    """
    cleaned = _NOT_NUMERIC.sub("", value or "").rstrip(".,")
    if not cleaned:
        return None

    parts = _SEPARATORS.split(cleaned)
    if len(parts) > 1:
        cleaned = "".join(parts[:-1]) + "." + parts[-1]
    try:
        return float(cleaned)
    except ValueError:
        return None


def find_amounts(line: str) -> list[float]:
    amounts = []
    for m in AMOUNT_TOKEN.finditer(line):
        value = parse_amount(m.group(0))
        if value is not None:
            amounts.append(value)
    return amounts


def contains_keyword(line: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive containment of a keyword starting at a word boundary.

    ``tel`` hits ``Telephone`` but ``tin`` does not hit ``Martini``.
    """
    lower = line.casefold()
    return any(_keyword_pattern(kw).search(lower) for kw in keywords)


def has_letter(value: str) -> bool:
    return any(ch.isalpha() for ch in value)


@lru_cache(maxsize=256)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![^\W\d_]){re.escape(keyword.casefold())}")
