from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = frozenset({".jpg", ".jpeg", ".png"})


class OcrError(RuntimeError):
    pass


class OcrNotAvailableError(OcrError):
    pass


class OcrFailedError(OcrError):
    pass


class UnsupportedImageError(OcrError):
    pass


@dataclass(frozen=True, slots=True)
class PaddleOcrConfig:
    lang: str = "en"
    use_angle_cls: bool = True


def ocr_image_path(image_path: Path, *, config: PaddleOcrConfig | None = None) -> str:
    if not image_path.exists():
        raise FileNotFoundError(str(image_path))
    if image_path.suffix.casefold() not in SUPPORTED_SUFFIXES:
        raise UnsupportedImageError(f"Unsupported image format: {image_path.suffix or '<none>'}")

    cfg = config or PaddleOcrConfig()
    ocr = _get_ocr(cfg.lang, cfg.use_angle_cls)

    try:
        result = _predict(ocr, str(image_path), use_angle_cls=cfg.use_angle_cls)
    except Exception as exc:
        raise OcrFailedError(f"PaddleOCR failed: {exc}") from exc

    lines = flatten_and_sort(result)
    logger.info("OCR recognized %d text lines in %s", len(lines), image_path.name)
    return "\n".join(lines).strip()


def flatten_and_sort(result: object) -> list[str]:
    # PaddleOCR returns either:
    # - list[OCRResult] (dict-like with rec_texts + rec_boxes) from the PaddleX pipeline
    # - list[list[[box, (text, score)], ...]] per image, or a flat list for one image
    if not isinstance(result, list):
        return []

    entries: list[tuple[float, float, str]] = []

    if result and isinstance(result[0], Mapping) and "rec_texts" in result[0]:
        for page in result:
            if not isinstance(page, Mapping):
                continue
            texts = page.get("rec_texts")
            if not isinstance(texts, list):
                continue
            boxes = page.get("rec_boxes")
            if boxes is None:
                boxes = page.get("dt_polys")

            for idx, text in enumerate(texts):
                s = str(text).strip()
                if not s:
                    continue
                box = None
                if (
                    boxes is not None
                    and not isinstance(boxes, (str, bytes))
                    and hasattr(boxes, "__len__")
                    and hasattr(boxes, "__getitem__")
                    and idx < len(boxes)
                ):
                    box = boxes[idx]
                x, y = _top_left_xy(box)
                entries.append((y, x, s))
        entries.sort(key=lambda t: (t[0], t[1]))
        return [t[2] for t in entries]

    def ingest_item(item: object) -> None:
        if not (isinstance(item, list) and len(item) >= 2):
            return
        text_tuple = item[1]
        if not (isinstance(text_tuple, (list, tuple)) and len(text_tuple) >= 1):
            return
        text = str(text_tuple[0]).strip()
        if not text:
            return
        x, y = _top_left_xy(item[0])
        entries.append((y, x, text))

    if _looks_like_item(result[0] if result else None):
        for item in result:
            ingest_item(item)
    else:
        for maybe_image in result:
            if isinstance(maybe_image, list):
                for item in maybe_image:
                    ingest_item(item)

    entries.sort(key=lambda t: (t[0], t[1]))
    return [t[2] for t in entries]


def _looks_like_item(value: object) -> bool:
    # [box, (text, score)]; a page is a list of these
    return (
        isinstance(value, list)
        and len(value) >= 2
        and isinstance(value[0], (list, tuple))
        and isinstance(value[1], (list, tuple))
        and len(value[1]) >= 1
        and isinstance(value[1][0], str)
    )


def _top_left_xy(box: object) -> tuple[float, float]:
    # [x1, y1, x2, y2] or [[x1, y1], [x2, y2], [x3, y3], [x4, y4]]
    if not isinstance(box, Sequence) or isinstance(box, (str, bytes)) or len(box) == 0:
        if hasattr(box, "tolist"):
            return _top_left_xy(box.tolist())
        return 0.0, 0.0
    if len(box) == 4 and all(isinstance(v, (int, float)) for v in box):
        return float(box[0]), float(box[1])
    pt = box[0]
    if isinstance(pt, (list, tuple)) and len(pt) >= 2:
        return float(pt[0]), float(pt[1])
    return 0.0, 0.0


@lru_cache(maxsize=4)
def _get_ocr(lang: str, use_angle_cls: bool):
    try:
        from paddleocr import PaddleOCR  # type: ignore
    except ImportError as exc:
        raise OcrNotAvailableError(
            "PaddleOCR is not installed/available. Install the `ocr` extra to enable image OCR."
        ) from exc

    try:
        import paddle  # type: ignore  # noqa: F401
    except ImportError as exc:
        raise OcrNotAvailableError(
            "PaddleOCR backend requires PaddlePaddle (`paddle`). "
            f"Current Python is {sys.version.split()[0]}; PaddlePaddle wheels may not be available for this version."
        ) from exc

    # Constructor args vary across PaddleOCR versions; some raise ValueError on unknown args.
    try:
        return PaddleOCR(lang=lang, use_textline_orientation=use_angle_cls)
    except (TypeError, ValueError):
        logger.debug("PaddleOCR rejected use_textline_orientation, retrying with use_angle_cls")
    try:
        return PaddleOCR(lang=lang, use_angle_cls=use_angle_cls)
    except (TypeError, ValueError):
        logger.debug("PaddleOCR rejected use_angle_cls, retrying with defaults")
    return PaddleOCR(lang=lang)


def _predict(ocr, image_path: str, *, use_angle_cls: bool) -> object:
    # newer releases expose predict(img); older ones ocr(img, cls=bool)
    if hasattr(ocr, "predict"):
        return ocr.predict(image_path)

    if hasattr(ocr, "ocr"):
        try:
            return ocr.ocr(image_path, cls=use_angle_cls)
        except TypeError:
            return ocr.ocr(image_path)

    raise OcrFailedError("Unsupported PaddleOCR object: missing predict/ocr methods")
