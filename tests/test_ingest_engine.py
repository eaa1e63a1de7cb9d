import json
from datetime import date
from pathlib import Path

import pytest

from receipt_capture.engine import IngestEngine, ReceiptEngine
from receipt_capture.ocr.paddleocr_backend import OcrFailedError, OcrNotAvailableError, UnsupportedImageError
from receipt_capture.project_paths import ProjectPaths
from receipt_capture.rules.loader import ParserRules

from conftest import JOES_CAFE, write_rules


def test_ingest_text_persists_raw_and_receipt(paths: ProjectPaths, make_engine) -> None:
    engine = make_engine()

    result = engine.ingest_text(JOES_CAFE, source_name="pytest")

    assert result.status == "ok"
    assert result.error is None
    assert result.receipt is not None
    assert result.receipt.store_name == "Joe's Cafe"
    assert result.receipt.purchase_date == date(2023, 3, 12)
    assert result.receipt.total_amount == 7.0
    assert [(i.name, i.quantity, i.unit_price) for i in result.receipt.items] == [("Coffee", 2, 3.5)]
    assert result.receipt.provenance.date_source == "parsed"

    assert (paths.root / Path(result.ingest_event_path)).exists()
    assert result.raw_text_path is not None
    assert (paths.root / Path(result.raw_text_path)).read_text(encoding="utf-8") == JOES_CAFE
    assert result.receipt_path is not None
    assert (paths.root / Path(result.receipt_path)).exists()


def test_missing_date_uses_injected_today(make_engine) -> None:
    engine = make_engine(today=lambda: date(2030, 5, 6))

    result = engine.ingest_text("Corner Shop\nMilk 1 2.49\nTotal 2.49")

    assert result.receipt is not None
    assert result.receipt.purchase_date == date(2030, 5, 6)
    assert result.receipt.provenance.date_source == "fallback"


def test_missing_date_can_stay_missing(make_engine) -> None:
    engine = make_engine(date_fallback="none")

    result = engine.ingest_text("Corner Shop\nMilk 1 2.49\nTotal 2.49")

    assert result.receipt is not None
    assert result.receipt.purchase_date is None
    assert result.receipt.provenance.date_source == "missing"


def test_unknown_date_fallback_is_rejected(make_engine) -> None:
    with pytest.raises(ValueError):
        make_engine(date_fallback="yesterday")


def test_ingest_image_runs_ocr(paths: ProjectPaths, make_engine) -> None:
    seen: list[Path] = []

    def fake_ocr(image_path: Path) -> str:
        seen.append(image_path)
        return "Bagel Shop\n01.02.2024\nBagel\n3 2.25\nTotal 6.75"

    engine = make_engine(recognize_text=fake_ocr)
    result = engine.ingest_image(b"\x89PNG fake", filename="receipt.PNG", content_type="image/png")

    assert result.status == "ok"
    assert len(seen) == 1 and seen[0].exists() and seen[0].suffix == ".png"
    assert result.receipt is not None
    assert result.receipt.image_ref == result.raw_image_path
    assert result.receipt.provenance.ocr_engine == "custom"
    assert [(i.name, i.quantity, i.unit_price) for i in result.receipt.items] == [("Bagel", 3, 2.25)]

    event = json.loads((paths.root / result.ingest_event_path).read_text(encoding="utf-8"))
    assert event["ocr"] == {"engine": "custom", "provided": False}


def test_ingest_image_with_supplied_text_skips_ocr(make_engine) -> None:
    def exploding_ocr(image_path: Path) -> str:
        raise AssertionError("OCR should not run")

    engine = make_engine(recognize_text=exploding_ocr)
    result = engine.ingest_image(b"jpeg", filename="r.jpg", ocr_text=JOES_CAFE)

    assert result.status == "ok"
    assert result.receipt is not None
    assert result.receipt.provenance.ocr_engine is None


def test_ocr_failure_is_not_an_empty_receipt(make_engine) -> None:
    def failing_ocr(image_path: Path) -> str:
        raise OcrFailedError("PaddleOCR failed: corrupt image")

    engine = make_engine(recognize_text=failing_ocr)
    result = engine.ingest_image(b"jpeg", filename="r.jpg", content_type="image/jpeg")

    assert result.status == "ocr_failed"
    assert result.receipt is None
    assert result.error == "PaddleOCR failed: corrupt image"
    assert result.raw_image_path is not None
    assert engine.list_receipts() == []


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (OcrNotAvailableError("no paddle"), "ocr_unavailable"),
        (UnsupportedImageError("bad format"), "unsupported_media"),
        (FileNotFoundError("gone"), "ocr_failed"),
    ],
)
def test_ocr_error_statuses(make_engine, exc: Exception, status: str) -> None:
    def failing_ocr(image_path: Path) -> str:
        raise exc

    result = make_engine(recognize_text=failing_ocr).ingest_image(b"png", filename="r.png")

    assert result.status == status
    assert result.receipt is None


def test_unsupported_media_is_not_stored(paths: ProjectPaths, make_engine) -> None:
    engine = make_engine(recognize_text=lambda p: JOES_CAFE)

    result = engine.ingest_image(b"GIF89a", filename="scan.gif", content_type="image/gif")

    assert result.status == "unsupported_media"
    assert result.raw_image_path is None
    assert list((paths.raw_dir / "images").iterdir()) == []


def test_zero_items_is_a_valid_result(make_engine) -> None:
    engine = make_engine(recognize_text=lambda p: "Blurry\nnothing readable")

    result = engine.ingest_image(b"png", filename="r.png", content_type="image/png")

    assert result.status == "ok"
    assert result.receipt is not None
    assert result.receipt.items == []
    assert result.receipt.total_amount == 0.0


def test_list_receipts_filters(make_engine) -> None:
    engine = make_engine()
    engine.ingest_text(JOES_CAFE)
    engine.ingest_text("Corner Shop\n2024-01-15\nMilk 1 2.49\nTotal 2.49")

    assert [r.store_name for r in engine.list_receipts()] == ["Joe's Cafe", "Corner Shop"]
    assert [r.store_name for r in engine.list_receipts(date_from=date(2024, 1, 1))] == ["Corner Shop"]
    assert [r.store_name for r in engine.list_receipts(store_name="Joe's Cafe")] == ["Joe's Cafe"]


def test_rules_are_loaded_from_the_rules_dir(tmp_path: Path) -> None:
    paths = ProjectPaths.under(tmp_path)
    write_rules(paths.rules_dir, strategy="noise_filter")

    engine = IngestEngine(paths, today=lambda: date(2024, 1, 2))

    assert engine.ruleset.parser.store_strategy == "noise_filter"
    result = engine.ingest_text("(555) 123-4567\n1 Elm Street\nElm Grocer\nTotal 3.00")
    assert result.receipt is not None
    assert result.receipt.store_name == "Elm Grocer"


def test_receipt_engine_is_pure() -> None:
    engine = ReceiptEngine(ParserRules())

    assert engine.parse_text(JOES_CAFE) == engine.parse_text(JOES_CAFE)
    assert engine.parse_text("").store_name == "Unknown Store"
