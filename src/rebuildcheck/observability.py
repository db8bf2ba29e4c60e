"""Structured logging helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        scenario: str | None,
        phase: str | None,
        message: str,
        state: str | None = None,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "scenario": scenario,
            "phase": phase,
            "state": state,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)

    def records_for_scenario(self, scenario: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("scenario") == scenario]

    def states_for_phase(self, scenario: str, phase: str) -> list[str]:
        return [
            record["state"]
            for record in self.records
            if record.get("scenario") == scenario
            and record.get("phase") == phase
            and record.get("operation") == "transition"
        ]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
