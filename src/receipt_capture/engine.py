from __future__ import annotations

import dataclasses
import logging
import os
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import IngestResult, Provenance, ReceiptRecord
from .ocr.paddleocr_backend import (
    SUPPORTED_SUFFIXES,
    OcrError,
    OcrNotAvailableError,
    PaddleOcrConfig,
    UnsupportedImageError,
    ocr_image_path,
)
from .project_paths import ProjectPaths
from .receipt.parser import PARSER_NAME, ParsedReceipt, extract_receipt_data
from .rules.loader import DEFAULT_RULES, ParserRules, RuleSet
from .storage import ReceiptRejectedError, ReceiptStore, slug, write_json


logger = logging.getLogger(__name__)

DATE_FALLBACKS = ("today", "none")
SUPPORTED_CONTENT_TYPES = {"image/jpeg": ".jpg", "image/png": ".png"}


def _now(tz: str = "UTC") -> datetime:
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return datetime.now().astimezone()
    return datetime.now(tz=zone)


@dataclass(frozen=True, slots=True)
class ReceiptEngine:
    rules: ParserRules = DEFAULT_RULES

    def parse_text(self, text: str) -> ParsedReceipt:
        return extract_receipt_data(text, rules=self.rules)


class IngestEngine:
    def __init__(
        self,
        paths: ProjectPaths | None = None,
        *,
        ruleset: RuleSet | None = None,
        recognize_text: Callable[[Path], str] | None = None,
        today: Callable[[], date] | None = None,
        tz: str | None = None,
        date_fallback: str | None = None,
    ) -> None:
        self.paths = paths or ProjectPaths.detect()
        self.paths.ensure_dirs()
        self.tz = tz or os.getenv("RECEIPT_CAPTURE_TZ", "UTC")
        self.date_fallback = date_fallback or os.getenv("RECEIPT_CAPTURE_DATE_FALLBACK", "today")
        if self.date_fallback not in DATE_FALLBACKS:
            raise ValueError(f"Unknown date_fallback {self.date_fallback!r}; expected one of {', '.join(DATE_FALLBACKS)}.")

        self.ruleset = ruleset or RuleSet.load_from_dir(self.paths.rules_dir)
        self.receipt_engine = ReceiptEngine(self.ruleset.parser)
        self.store = ReceiptStore(self.paths.receipts_dir)
        self.recognize_text = recognize_text or _paddle_recognize_text
        self.ocr_engine = "paddleocr" if recognize_text is None else "custom"
        self.today = today or (lambda: _now(self.tz).date())

    def ingest_text(self, text: str, *, source_name: str | None = None) -> IngestResult:
        ingest_event_id = str(uuid.uuid4())
        received_at = _now(self.tz).isoformat()

        raw_text_path = self.paths.raw_dir / "ocr_text" / f"{ingest_event_id}.txt"
        raw_text_path.write_text(text, encoding="utf-8")

        record, status, error = self._parse_and_store(
            text,
            ingest_event_id=ingest_event_id,
            source_type="text",
            image_ref=self._rel(raw_text_path),
            ocr_engine=None,
        )

        return self._finish(
            ingest_event_id,
            received_at=received_at,
            source_type="text",
            source_name=source_name,
            status=status,
            error=error,
            raw_text_path=raw_text_path,
            record=record,
        )

    def ingest_image(
        self,
        image_bytes: bytes,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        ocr_text: str | None = None,
        source_name: str | None = None,
    ) -> IngestResult:
        ingest_event_id = str(uuid.uuid4())
        received_at = _now(self.tz).isoformat()

        original = Path(filename or "image")
        suffix = original.suffix.casefold() or SUPPORTED_CONTENT_TYPES.get(content_type or "", "")
        if not _is_supported_media(suffix, content_type):
            return self._finish(
                ingest_event_id,
                received_at=received_at,
                source_type="image",
                source_name=source_name,
                status="unsupported_media",
                error=f"Unsupported media: filename={filename!r} content_type={content_type!r}",
            )

        safe_stem = slug(original.stem or "image")
        raw_image_path = self.paths.raw_dir / "images" / f"{ingest_event_id}_{safe_stem}{suffix}"
        raw_image_path.write_bytes(image_bytes)

        ocr_engine = None
        if ocr_text is None:
            status = None
            try:
                ocr_text = self.recognize_text(raw_image_path)
                ocr_engine = self.ocr_engine
            except OcrNotAvailableError as exc:
                status, error = "ocr_unavailable", str(exc)
            except UnsupportedImageError as exc:
                status, error = "unsupported_media", str(exc)
            except (OcrError, OSError) as exc:
                status, error = "ocr_failed", str(exc)

            if status is not None:
                logger.warning("OCR for ingest %s did not produce text: %s", ingest_event_id, error)
                return self._finish(
                    ingest_event_id,
                    received_at=received_at,
                    source_type="image",
                    source_name=source_name,
                    status=status,
                    error=error,
                    raw_image_path=raw_image_path,
                )

        raw_text_path = self.paths.raw_dir / "ocr_text" / f"{ingest_event_id}.txt"
        raw_text_path.write_text(ocr_text, encoding="utf-8")

        record, status, error = self._parse_and_store(
            ocr_text,
            ingest_event_id=ingest_event_id,
            source_type="image",
            image_ref=self._rel(raw_image_path),
            ocr_engine=ocr_engine,
        )

        return self._finish(
            ingest_event_id,
            received_at=received_at,
            source_type="image",
            source_name=source_name,
            status=status,
            error=error,
            raw_text_path=raw_text_path,
            raw_image_path=raw_image_path,
            record=record,
            extra={"ocr": {"engine": ocr_engine, "provided": ocr_engine is None}},
        )

    def list_receipts(
        self,
        *,
        store_name: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[ReceiptRecord]:
        return self.store.list(store_name=store_name, date_from=date_from, date_to=date_to)

    def _parse_and_store(
        self,
        text: str,
        *,
        ingest_event_id: str,
        source_type: str,
        image_ref: str,
        ocr_engine: str | None,
    ) -> tuple[ReceiptRecord | None, str, str | None]:
        parsed = self.receipt_engine.parse_text(text)
        parsed, date_source = self._apply_date_policy(parsed)

        provenance = Provenance(
            source_type=source_type,
            ocr_engine=ocr_engine,
            parser=PARSER_NAME,
            ingest_event_id=ingest_event_id,
            date_source=date_source,
        )
        try:
            receipt_id = self.store.save(parsed, image_ref=image_ref, provenance=provenance)
        except ReceiptRejectedError as exc:
            logger.warning("Receipt from ingest %s rejected: %s", ingest_event_id, exc)
            return None, "storage_rejected", str(exc)

        return self.store.get(receipt_id), "ok", None

    def _apply_date_policy(self, parsed: ParsedReceipt) -> tuple[ParsedReceipt, str]:
        if parsed.purchase_date is not None:
            return parsed, "parsed"
        if self.date_fallback == "today":
            return dataclasses.replace(parsed, purchase_date=self.today()), "fallback"
        return parsed, "missing"

    def _finish(
        self,
        ingest_event_id: str,
        *,
        received_at: str,
        source_type: str,
        source_name: str | None,
        status: str,
        error: str | None = None,
        raw_text_path: Path | None = None,
        raw_image_path: Path | None = None,
        record: ReceiptRecord | None = None,
        extra: dict | None = None,
    ) -> IngestResult:
        receipt_path = self.store.path_for(record.id) if record else None

        ingest_event_path = self.paths.raw_dir / "ingest_events" / f"{ingest_event_id}.json"
        write_json(
            ingest_event_path,
            {
                "ingest_event_id": ingest_event_id,
                "received_at": received_at,
                "source_type": source_type,
                "source_name": source_name,
                "status": status,
                "error": error,
                "raw_text_path": self._rel(raw_text_path) if raw_text_path else None,
                "raw_image_path": self._rel(raw_image_path) if raw_image_path else None,
                "receipt_path": self._rel(receipt_path) if receipt_path else None,
                **(extra or {}),
            },
        )
        logger.info("Ingest %s finished with status %s", ingest_event_id, status)

        return IngestResult(
            ingest_event_id=ingest_event_id,
            status=status,
            raw_text_path=self._rel(raw_text_path) if raw_text_path else None,
            raw_image_path=self._rel(raw_image_path) if raw_image_path else None,
            ingest_event_path=self._rel(ingest_event_path),
            receipt_path=self._rel(receipt_path) if receipt_path else None,
            receipt=record,
            error=error,
        )

    def _rel(self, path: Path) -> str:
        try:
            return path.relative_to(self.paths.root).as_posix()
        except ValueError:
            return path.as_posix()


def _is_supported_media(suffix: str, content_type: str | None) -> bool:
    if content_type:
        return content_type in SUPPORTED_CONTENT_TYPES
    return suffix in SUPPORTED_SUFFIXES


def _paddle_recognize_text(image_path: Path) -> str:
    cfg = PaddleOcrConfig(lang=os.getenv("RECEIPT_CAPTURE_OCR_LANG", "en"), use_angle_cls=True)
    return ocr_image_path(image_path, config=cfg)
