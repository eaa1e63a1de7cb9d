from datetime import date
from pathlib import Path

import pytest

from receipt_capture.models import Provenance
from receipt_capture.receipt.line_items import LineItem
from receipt_capture.receipt.parser import ParsedReceipt
from receipt_capture.storage import ReceiptRejectedError, ReceiptStore, slug


def _parsed(store: str = "Joe's Cafe", purchase_date: date | None = date(2023, 3, 12), total: float = 7.0) -> ParsedReceipt:
    return ParsedReceipt(
        store_name=store,
        purchase_date=purchase_date,
        total_amount=total,
        items=(LineItem(name="Coffee", quantity=2, unit_price=3.5),),
    )


def _provenance() -> Provenance:
    return Provenance(source_type="text")


def test_save_and_get_round_trip(tmp_path: Path) -> None:
    store = ReceiptStore(tmp_path / "receipts")

    receipt_id = store.save(_parsed(), image_ref="raw/images/a.png", provenance=_provenance())

    path = store.path_for(receipt_id)
    assert path is not None
    assert path.parent.name == "2023"
    assert path.name.startswith("2023-03-12_joe_s_cafe_")

    record = store.get(receipt_id)
    assert record is not None
    assert record.store_name == "Joe's Cafe"
    assert record.purchase_date == date(2023, 3, 12)
    assert record.items[0].name == "Coffee"
    assert record.image_ref == "raw/images/a.png"


def test_undated_receipts_get_their_own_folder(tmp_path: Path) -> None:
    store = ReceiptStore(tmp_path / "receipts")

    receipt_id = store.save(_parsed(purchase_date=None), image_ref="a.png", provenance=_provenance())

    path = store.path_for(receipt_id)
    assert path is not None
    assert path.parent.name == "undated"


def test_invalid_receipts_are_rejected(tmp_path: Path) -> None:
    store = ReceiptStore(tmp_path / "receipts")

    with pytest.raises(ReceiptRejectedError):
        store.save(_parsed(), image_ref="", provenance=_provenance())
    with pytest.raises(ReceiptRejectedError):
        store.save(_parsed(total=-1.0), image_ref="a.png", provenance=_provenance())
    with pytest.raises(ReceiptRejectedError):
        store.save(_parsed(store=""), image_ref="a.png", provenance=_provenance())

    assert store.list() == []


def test_list_filters_by_store_and_inclusive_date_range(tmp_path: Path) -> None:
    store = ReceiptStore(tmp_path / "receipts")
    store.save(_parsed(purchase_date=date(2023, 3, 12)), image_ref="a.png", provenance=_provenance())
    store.save(_parsed(purchase_date=date(2023, 4, 1)), image_ref="b.png", provenance=_provenance())
    store.save(_parsed(store="Corner Shop", purchase_date=date(2023, 3, 20)), image_ref="c.png", provenance=_provenance())
    store.save(_parsed(purchase_date=None), image_ref="d.png", provenance=_provenance())

    assert len(store.list()) == 4
    assert [r.image_ref for r in store.list(store_name="Joe's Cafe", date_from=date(2023, 3, 12))] == ["a.png", "b.png"]
    assert [r.image_ref for r in store.list(date_to=date(2023, 3, 20))] == ["a.png", "c.png"]
    assert store.list(store_name="Nope") == []


def test_get_unknown_id(tmp_path: Path) -> None:
    assert ReceiptStore(tmp_path / "receipts").get("missing") is None


def test_slug() -> None:
    assert slug("Joe's Café #1") == "joe_s_café_1"
    assert slug("***") == "unknown"
