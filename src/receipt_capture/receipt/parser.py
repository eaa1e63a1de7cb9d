from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from ..rules.loader import DEFAULT_RULES, ParserRules
from .line_items import LineItem, extract_items
from .lines import normalize_lines
from .purchase_date import find_purchase_date
from .store_name import extract_store_name
from .total_amount import find_total_amount


logger = logging.getLogger(__name__)

PARSER_NAME = "receipt_text_v1"


@dataclass(frozen=True, slots=True)
class ParsedReceipt:
    store_name: str
    purchase_date: date | None
    total_amount: float
    items: tuple[LineItem, ...]


def extract_receipt_data(raw_ocr_text: object, *, rules: ParserRules = DEFAULT_RULES) -> ParsedReceipt:
    """Turn raw OCR text into a :class:`ParsedReceipt`.

    Never raises on text input: missing fields fall back to ``"Unknown Store"``,
    ``None`` for the date, ``0.0`` for the total and no items.
    """
    lines = normalize_lines(raw_ocr_text)

    store_name = extract_store_name(lines, rules=rules)

    consumed: set[int] = set()
    purchase_date = None
    found_date = find_purchase_date(lines)
    if found_date is not None:
        purchase_date, date_idx = found_date
        consumed.add(date_idx)

    total_amount, total_idx = find_total_amount(lines, rules=rules)
    if total_idx is not None:
        consumed.add(total_idx)

    items = extract_items(lines, rules=rules, consumed=consumed)

    logger.debug(
        "Parsed %d lines: store=%r date=%s total=%.2f items=%d",
        len(lines),
        store_name,
        purchase_date.isoformat() if purchase_date else None,
        total_amount,
        len(items),
    )
    return ParsedReceipt(
        store_name=store_name,
        purchase_date=purchase_date,
        total_amount=total_amount,
        items=items,
    )
