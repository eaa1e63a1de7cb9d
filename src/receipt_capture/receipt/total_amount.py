from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from difflib import SequenceMatcher

from ..rules.loader import DEFAULT_RULES, ParserRules
from .lines import AMOUNT_TOKEN, find_amounts, parse_amount


logger = logging.getLogger(__name__)

_WORD = re.compile(r"[^\W\d_]+")
_MIN_FUZZY_WORD = 3


def keyword_similarity(candidate: str, keyword: str) -> float:
    return SequenceMatcher(None, candidate, keyword).ratio()


def is_total_line(line: str, rules: ParserRules = DEFAULT_RULES) -> bool:
    lower = line.casefold()
    if any(kw in lower for kw in rules.total_keywords):
        return True

    words = [w for w in _WORD.findall(lower) if len(w) >= _MIN_FUZZY_WORD]
    for kw in rules.total_keywords:
        width = len(kw.split())
        for start in range(0, len(words) - width + 1):
            candidate = " ".join(words[start : start + width])
            if keyword_similarity(candidate, kw) > rules.fuzzy_threshold:
                return True
    return False


def find_total_amount(lines: Sequence[str], *, rules: ParserRules = DEFAULT_RULES) -> tuple[float, int | None]:
    """Return the total and the index of the keyword line it came from.

    The index is ``None`` when the value came from the largest-amount
    fallback or nothing was found at all.
    """
    for idx in range(len(lines) - 1, -1, -1):
        line = lines[idx]
        if not is_total_line(line, rules):
            continue
        m = AMOUNT_TOKEN.search(line)
        if not m:
            continue
        value = parse_amount(m.group(0))
        # a trailing "Balance 0.00" after payment is not the total
        if value is not None and value > 0:
            logger.debug("Total %.2f from keyword line %d: %r", value, idx, line)
            return value, idx

    amounts = [a for line in lines for a in find_amounts(line)]
    if amounts:
        value = max(amounts)
        logger.debug("Total %.2f from largest-amount fallback over %d amounts", value, len(amounts))
        return value, None

    return 0.0, None


def extract_total_amount(lines: Sequence[str], *, rules: ParserRules = DEFAULT_RULES) -> float:
    return find_total_amount(lines, rules=rules)[0]
