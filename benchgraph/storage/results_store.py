"""Run-level result files: one JSON line per unit plus the final summary."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from benchgraph.core.types import UnitResult
from benchgraph.schema.serialization import make_json_safe
from benchgraph.schema.summary import RunSummary


def unit_result_to_dict(result: UnitResult) -> Dict[str, Any]:
    payload = make_json_safe(result)
    payload["composite_key"] = result.composite_key
    payload["artifact"] = str(result.artifact.path) if result.artifact else None
    return payload


class ResultsStore:
    def __init__(self, results_path: Path, summary_path: Path, report_path: Path):
        self.results_path = Path(results_path)
        self.summary_path = Path(summary_path)
        self.report_path = Path(report_path)

    def reset(self) -> None:
        self.results_path.parent.mkdir(parents=True, exist_ok=True)
        self.results_path.write_text("", encoding="utf-8")

    def append(self, run_id: str, result: UnitResult) -> None:
        self.results_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "run_id": run_id,
            "result": unit_result_to_dict(result),
        }
        with self.results_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload) + "\n")

    def write_summary(self, summary: RunSummary) -> None:
        self.summary_path.parent.mkdir(parents=True, exist_ok=True)
        self.summary_path.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
        self.report_path.write_text(summary.render_text(), encoding="utf-8")
