from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from receipt_capture.engine import IngestEngine
from receipt_capture.project_paths import ProjectPaths


JOES_CAFE = "Joe's Cafe\n123 Main St\n12/03/2023\nCoffee 2 3.50\nTotal: 7.00"


def write_rules(rules_dir: Path, *, strategy: str = "keyword") -> None:
    rules_dir.mkdir(parents=True, exist_ok=True)
    (rules_dir / "parser.yml").write_text(
        "\n".join(
            [
                "version: 1",
                "store:",
                f"  strategy: {strategy}",
                "  scan_limit: 10",
                "totals:",
                "  fuzzy_threshold: 0.6",
            ]
        )
        + "\n",
        encoding="utf-8",
    )


@pytest.fixture
def paths(tmp_path: Path) -> ProjectPaths:
    p = ProjectPaths.under(tmp_path)
    write_rules(p.rules_dir)
    return p


@pytest.fixture
def make_engine(paths: ProjectPaths):
    def factory(**kwargs) -> IngestEngine:
        kwargs.setdefault("today", lambda: date(2024, 1, 2))
        kwargs.setdefault("tz", "UTC")
        kwargs.setdefault("date_fallback", "today")
        return IngestEngine(paths, **kwargs)

    return factory
