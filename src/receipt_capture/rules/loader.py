from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


STORE_STRATEGIES = ("keyword", "noise_filter")

STORE_KEYWORDS = ("coffee", "cafe", "shop", "store", "mart", "bakery", "bar")

ADDRESS_KEYWORDS = ("street", "st.", "road", "rd.", "ave", "avenue", "blvd", "floor", "suite")

TOTAL_KEYWORDS = (
    "total",
    "amount due",
    "amount payable",
    "total due",
    "balance",
    "amt due",
    "balance due",
)

NON_ITEM_KEYWORDS = (
    "subtotal",
    "sub total",
    "tax",
    "t/x",
    "total",
    "balance",
    "amount",
    "change",
    "txbl",
    "table",
    "cashier",
    "waiter",
    "ref",
    "fs no",
    "receipt",
    "cash invoice",
    "system by",
    "tin",
    "tel",
    "call",
    "erca",
    "ser. charge",
    "service charge",
)


@dataclass(frozen=True, slots=True)
class ParserRules:
    store_strategy: str = "keyword"
    store_scan_limit: int = 10
    store_keywords: tuple[str, ...] = STORE_KEYWORDS
    address_keywords: tuple[str, ...] = ADDRESS_KEYWORDS
    total_keywords: tuple[str, ...] = TOTAL_KEYWORDS
    non_item_keywords: tuple[str, ...] = NON_ITEM_KEYWORDS
    fuzzy_threshold: float = 0.6

    def __post_init__(self) -> None:
        if self.store_strategy not in STORE_STRATEGIES:
            raise ValueError(
                f"Unknown store_strategy {self.store_strategy!r}; expected one of {', '.join(STORE_STRATEGIES)}."
            )


DEFAULT_RULES = ParserRules()


@dataclass(frozen=True, slots=True)
class RuleSet:
    parser: ParserRules = field(default_factory=ParserRules)

    @classmethod
    def load_from_dir(cls, rules_dir: Path) -> "RuleSet":
        data = _load_yaml(rules_dir / "parser.yml") or {}

        store = dict(data.get("store") or {})
        totals = dict(data.get("totals") or {})
        items = dict(data.get("items") or {})

        parser_rules = ParserRules(
            store_strategy=str(store.get("strategy") or DEFAULT_RULES.store_strategy),
            store_scan_limit=int(store.get("scan_limit") or DEFAULT_RULES.store_scan_limit),
            store_keywords=_keywords(store.get("keywords"), DEFAULT_RULES.store_keywords),
            address_keywords=_keywords(store.get("address_keywords"), DEFAULT_RULES.address_keywords),
            total_keywords=_keywords(totals.get("keywords"), DEFAULT_RULES.total_keywords),
            fuzzy_threshold=float(totals.get("fuzzy_threshold") or DEFAULT_RULES.fuzzy_threshold),
            non_item_keywords=_keywords(items.get("non_item_keywords"), DEFAULT_RULES.non_item_keywords),
        )
        return cls(parser=parser_rules)


def _keywords(value: object, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if not isinstance(value, list):
        raise ValueError(f"Expected a list of keywords, got {type(value).__name__}.")
    return tuple(str(v).casefold() for v in value if str(v).strip())


def _load_yaml(path: Path) -> dict | None:
    if not path.exists():
        raise FileNotFoundError(str(path))
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping at {path}, got {type(data).__name__}.")
    return data
