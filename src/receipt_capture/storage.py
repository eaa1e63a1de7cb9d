from __future__ import annotations

import json
import logging
import uuid
from datetime import date, datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .models import ParsedReceiptOut, Provenance, ReceiptRecord
from .receipt.parser import ParsedReceipt


logger = logging.getLogger(__name__)


class ReceiptRejectedError(ValueError):
    pass


def slug(value: str) -> str:
    out = []
    for ch in value.casefold():
        if ch.isalnum():
            out.append(ch)
        else:
            out.append("_")
    slug_value = "".join(out)
    while "__" in slug_value:
        slug_value = slug_value.replace("__", "_")
    return slug_value.strip("_") or "unknown"


def write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def receipt_path(receipts_dir: Path, record: ReceiptRecord) -> Path:
    if record.purchase_date is None:
        folder, date_prefix = "undated", "undated"
    else:
        folder, date_prefix = str(record.purchase_date.year), record.purchase_date.isoformat()
    stem = f"{date_prefix}_{slug(record.store_name)}_{record.id}"
    return receipts_dir / folder / f"{stem}.json"


class ReceiptStore:
    """JSON-file receipt store: one document per receipt, grouped by purchase year."""

    def __init__(self, receipts_dir: Path) -> None:
        self.receipts_dir = receipts_dir

    def save(
        self,
        parsed: ParsedReceipt,
        *,
        image_ref: str,
        provenance: Provenance,
        receipt_id: str | None = None,
    ) -> str:
        try:
            out = ParsedReceiptOut.from_parsed(parsed)
            record = ReceiptRecord(
                id=receipt_id or str(uuid.uuid4()),
                store_name=out.store_name,
                purchase_date=out.purchase_date,
                total_amount=out.total_amount,
                image_ref=image_ref,
                items=out.items,
                created_at=datetime.now(tz=timezone.utc).isoformat(),
                provenance=provenance,
            )
        except ValidationError as exc:
            raise ReceiptRejectedError(f"Receipt rejected by store: {exc}") from exc

        path = receipt_path(self.receipts_dir, record)
        write_json(path, record.model_dump(mode="json"))
        logger.info("Stored receipt %s at %s", record.id, path)
        return record.id

    def path_for(self, receipt_id: str) -> Path | None:
        matches = sorted(self.receipts_dir.glob(f"*/*_{receipt_id}.json"))
        return matches[0] if matches else None

    def get(self, receipt_id: str) -> ReceiptRecord | None:
        path = self.path_for(receipt_id)
        if path is None:
            return None
        return ReceiptRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def list(
        self,
        *,
        store_name: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[ReceiptRecord]:
        records = []
        for path in self.receipts_dir.glob("*/*.json"):
            record = ReceiptRecord.model_validate_json(path.read_text(encoding="utf-8"))
            if store_name is not None and record.store_name != store_name:
                continue
            if date_from is not None or date_to is not None:
                if record.purchase_date is None:
                    continue
                if date_from is not None and record.purchase_date < date_from:
                    continue
                if date_to is not None and record.purchase_date > date_to:
                    continue
            records.append(record)
        records.sort(key=lambda r: (r.purchase_date or date.min, r.id))
        return records
