from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _resolve_from_root(root: Path, value: str) -> Path:
    candidate = Path(value)
    if candidate.is_absolute():
        return candidate
    return (root / candidate).resolve()


def find_project_root(start: Path | None = None) -> Path:
    cursor = (start or Path.cwd()).resolve()
    for candidate in [cursor, *cursor.parents]:
        if (candidate / "pyproject.toml").exists():
            return candidate
    raise RuntimeError("Could not find project root (missing pyproject.toml in parent chain).")


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    root: Path
    data_dir: Path
    raw_dir: Path
    receipts_dir: Path
    rules_dir: Path

    @classmethod
    def detect(cls, start: Path | None = None) -> "ProjectPaths":
        root = find_project_root(start)

        data_dir = _resolve_from_root(root, os.getenv("RECEIPT_CAPTURE_DATA_DIR", "data"))
        rules_dir = _resolve_from_root(root, os.getenv("RECEIPT_CAPTURE_RULES_DIR", str(data_dir / "rules")))

        return cls.under(root, data_dir=data_dir, rules_dir=rules_dir)

    @classmethod
    def under(cls, root: Path, *, data_dir: Path | None = None, rules_dir: Path | None = None) -> "ProjectPaths":
        data_dir = data_dir or root / "data"
        return cls(
            root=root,
            data_dir=data_dir,
            raw_dir=data_dir / "raw",
            receipts_dir=data_dir / "receipts",
            rules_dir=rules_dir or data_dir / "rules",
        )

    def ensure_dirs(self) -> None:
        (self.raw_dir / "images").mkdir(parents=True, exist_ok=True)
        (self.raw_dir / "ocr_text").mkdir(parents=True, exist_ok=True)
        (self.raw_dir / "ingest_events").mkdir(parents=True, exist_ok=True)
        self.receipts_dir.mkdir(parents=True, exist_ok=True)
