from __future__ import annotations

from datetime import date
from functools import lru_cache

from fastapi import Depends, FastAPI, File, Form, Query, UploadFile
from pydantic import BaseModel, Field

from ...engine import IngestEngine, ReceiptEngine
from ...logging_config import configure_logging, get_logger
from ...models import IngestResult, ParsedReceiptOut, ReceiptRecord


configure_logging()
logger = get_logger(__name__)


class ParseTextRequest(BaseModel):
    text: str = ""


class IngestTextRequest(BaseModel):
    text: str = Field(min_length=1)
    source_name: str | None = None


app = FastAPI(title="Receipt Capture Service", version="0.1.0")


@lru_cache(maxsize=1)
def get_engine() -> IngestEngine:
    return IngestEngine()


def get_receipt_engine(engine: IngestEngine = Depends(get_engine)) -> ReceiptEngine:
    return engine.receipt_engine


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.post("/receipts/parse_text", response_model=ParsedReceiptOut)
def parse_text(req: ParseTextRequest, receipt_engine: ReceiptEngine = Depends(get_receipt_engine)) -> ParsedReceiptOut:
    return ParsedReceiptOut.from_parsed(receipt_engine.parse_text(req.text))


@app.post("/receipts/ingest_text", response_model=IngestResult)
def ingest_text(req: IngestTextRequest, engine: IngestEngine = Depends(get_engine)) -> IngestResult:
    return engine.ingest_text(req.text, source_name=req.source_name)


@app.post("/receipts/upload", response_model=IngestResult)
async def upload_receipt(
    image: UploadFile = File(...),
    ocr_text: str | None = Form(None),
    source_name: str | None = Form(None),
    engine: IngestEngine = Depends(get_engine),
) -> IngestResult:
    content = await image.read()
    logger.info("Upload %r (%s, %d bytes)", image.filename, image.content_type, len(content))
    return engine.ingest_image(
        content,
        filename=image.filename,
        content_type=image.content_type,
        ocr_text=ocr_text,
        source_name=source_name,
    )


@app.get("/receipts", response_model=list[ReceiptRecord])
def list_receipts(
    store_name: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    engine: IngestEngine = Depends(get_engine),
) -> list[ReceiptRecord]:
    return engine.list_receipts(store_name=store_name, date_from=date_from, date_to=date_to)
