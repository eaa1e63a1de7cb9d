from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from .receipt.parser import PARSER_NAME, ParsedReceipt


class ReceiptItemRecord(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)


class ParsedReceiptOut(BaseModel):
    store_name: str = Field(min_length=1)
    purchase_date: date | None = None
    total_amount: float = Field(ge=0)
    items: list[ReceiptItemRecord] = Field(default_factory=list)

    @classmethod
    def from_parsed(cls, parsed: ParsedReceipt) -> "ParsedReceiptOut":
        return cls(
            store_name=parsed.store_name,
            purchase_date=parsed.purchase_date,
            total_amount=parsed.total_amount,
            items=[
                ReceiptItemRecord(name=it.name, quantity=it.quantity, unit_price=it.unit_price)
                for it in parsed.items
            ],
        )


class Provenance(BaseModel):
    source_type: str
    ocr_engine: str | None = None
    parser: str = PARSER_NAME
    ingest_event_id: str | None = None
    date_source: Literal["parsed", "fallback", "missing"] = "parsed"


class ReceiptRecord(BaseModel):
    schema_version: str = "1.0"
    id: str = Field(min_length=1)
    store_name: str = Field(min_length=1)
    purchase_date: date | None = None
    total_amount: float = Field(ge=0)
    image_ref: str = Field(min_length=1)
    items: list[ReceiptItemRecord] = Field(default_factory=list)
    created_at: str
    provenance: Provenance


class IngestResult(BaseModel):
    ingest_event_id: str
    status: str
    raw_text_path: str | None = None
    raw_image_path: str | None = None
    ingest_event_path: str
    receipt_path: str | None = None
    receipt: ReceiptRecord | None = None
    error: str | None = None
