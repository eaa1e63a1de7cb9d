from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..rules.loader import DEFAULT_RULES, ParserRules
from .lines import contains_keyword, has_letter, parse_amount


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LineItem:
    name: str
    quantity: int
    unit_price: float

    @property
    def dedupe_key(self) -> tuple[str, float, int]:
        return self.name.casefold(), self.unit_price, self.quantity


@dataclass(frozen=True, slots=True)
class ItemShape:
    name: str
    pattern: re.Pattern[str]


# <name> <qty> <unit price> [<line total>]
FULL_LINE = ItemShape(
    name="full_line",
    pattern=re.compile(r"^(?P<name>.+?)\s+(?P<qty>\d+)\s+(?P<price>[\d.,]+)(?:\s+(?P<total>[\d.,]+))?$"),
)

# <qty> <unit price> [<line total>], named by the previous line
SPLIT = ItemShape(
    name="split",
    pattern=re.compile(r"^(?P<qty>\d+)\s+(?P<price>[\d.,]+)(?:\s+(?P<total>[\d.,]+))?$"),
)


def extract_items(
    lines: Sequence[str],
    *,
    rules: ParserRules = DEFAULT_RULES,
    consumed: Iterable[int] = (),
) -> tuple[LineItem, ...]:
    used = set(consumed)
    items: list[LineItem] = []

    for idx, line in enumerate(lines):
        if idx in used or _is_non_item(line, rules):
            continue

        m = FULL_LINE.pattern.match(line)
        if m:
            item = _build_item(m.group("name"), m.group("qty"), m.group("price"))
            if item is not None:
                items.append(item)
                used.add(idx)
                continue

        m = SPLIT.pattern.match(line)
        if m and idx > 0 and (idx - 1) not in used:
            prev = lines[idx - 1]
            if not _is_non_item(prev, rules):
                item = _build_item(prev, m.group("qty"), m.group("price"))
                if item is not None:
                    items.append(item)
                    used.update((idx - 1, idx))

    deduped = dedupe_items(items)
    logger.debug("Extracted %d line items (%d before dedupe)", len(deduped), len(items))
    return deduped


def dedupe_items(items: Iterable[LineItem]) -> tuple[LineItem, ...]:
    seen: set[tuple[str, float, int]] = set()
    out: list[LineItem] = []
    for item in items:
        if item.dedupe_key in seen:
            continue
        seen.add(item.dedupe_key)
        out.append(item)
    return tuple(out)


def _build_item(raw_name: str, raw_qty: str, raw_price: str) -> LineItem | None:
    name = raw_name.strip()
    if not name or not has_letter(name):
        return None
    quantity = int(raw_qty)
    unit_price = parse_amount(raw_price)
    if quantity <= 0 or unit_price is None or unit_price <= 0:
        return None
    return LineItem(name=name, quantity=quantity, unit_price=unit_price)


def _is_non_item(line: str, rules: ParserRules) -> bool:
    return contains_keyword(line, rules.non_item_keywords)
