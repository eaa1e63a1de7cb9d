from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from ..rules.loader import DEFAULT_RULES, ParserRules
from .lines import contains_keyword


logger = logging.getLogger(__name__)

UNKNOWN_STORE = "Unknown Store"
MAX_STORE_NAME_LENGTH = 80

_PHONE = re.compile(r"(?:\+?\d[\d\s().-]{6,}\d)")


def extract_store_name(lines: Sequence[str], *, rules: ParserRules = DEFAULT_RULES) -> str:
    head = list(lines[: rules.store_scan_limit])
    if not head:
        return UNKNOWN_STORE

    if rules.store_strategy == "noise_filter":
        name = _first_non_noise_line(head, rules)
    else:
        name = _first_keyword_line(head, rules) or head[0]

    if not name:
        logger.debug("No store name candidate in the first %d lines", len(head))
        return UNKNOWN_STORE
    return name[:MAX_STORE_NAME_LENGTH]


def _first_keyword_line(head: Sequence[str], rules: ParserRules) -> str | None:
    for line in head:
        lower = line.casefold()
        if any(kw in lower for kw in rules.store_keywords):
            return line
    return None


def _first_non_noise_line(head: Sequence[str], rules: ParserRules) -> str | None:
    for line in head:
        if not is_noise_line(line, rules):
            return line
    return None


def is_noise_line(line: str, rules: ParserRules = DEFAULT_RULES) -> bool:
    if len(line) < 2:
        return True
    if _PHONE.search(line):
        return True
    return contains_keyword(line, rules.address_keywords)
