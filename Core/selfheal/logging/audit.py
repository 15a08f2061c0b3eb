from __future__ import annotations

import json
from pathlib import Path

from selfheal.core.metadata import ResolutionAttempt


class ResolutionAuditLogger:
    """Appends one JSON line per resolution to an audit file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, attempt: ResolutionAttempt) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(attempt.to_payload()) + "\n")

    def read(self) -> list[dict]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]
