from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Iterable

from pydantic import TypeAdapter, ValidationError

from selfheal.core.metadata import Candidate, ElementSnapshot, StoredRecord, utc_now
from selfheal.core.validation import UniquenessValidator

DEFAULT_STORE_FILE = "healingStore.json"
DEFAULT_RETENTION_DAYS = 30

_RECORDS = TypeAdapter(dict[str, StoredRecord])


class CandidateStore:
    """Keyed record set of healed locators, persisted as one JSON document.

    Every mutation rewrites the whole file. A single writer per file is
    assumed; concurrent writers can lose updates.
    """

    def __init__(
        self,
        validator: UniquenessValidator,
        file_name: str = DEFAULT_STORE_FILE,
        directory: str | Path = ".",
        retention_days: int = DEFAULT_RETENTION_DAYS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.validator = validator
        self.path = Path(directory).resolve() / file_name
        self.retention_days = retention_days
        self.logger = logger or logging.getLogger(__name__)
        self._records: dict[str, StoredRecord] = self._load()
        self.evict_stale()

    def save(
        self,
        key: str,
        healed_selector: str,
        candidates: Iterable[Candidate],
        snapshot: ElementSnapshot,
    ) -> StoredRecord | None:
        healed = self.validator.check(healed_selector)
        if not healed.is_unique:
            self.logger.warning(
                "Skipping save: element '%s' not found in DOM (%s)", healed_selector, healed.outcome.value
            )
            return None

        working: list[Candidate] = []
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.selector in seen:
                continue
            seen.add(candidate.selector)
            result = self.validator.check(candidate.selector)
            if result.is_unique:
                working.append(candidate)
            else:
                self.logger.warning("Skipped dead candidate: %s (%s)", candidate.selector, result.outcome.value)

        record = StoredRecord(
            original_key=key,
            healed_selector=healed_selector,
            candidates=working,
            snapshot=snapshot,
            updated_at=utc_now(),
        )
        self._records[key] = record
        self._persist()
        self.evict_stale()
        return record

    def get(self, key: str, current_snapshot: ElementSnapshot | None) -> StoredRecord | None:
        """Returns the record only while the element still looks the same."""

        record = self._records.get(key)
        if record is None:
            return None
        if not record.snapshot.matches(current_snapshot):
            return None
        return record

    def peek(self, key: str) -> StoredRecord | None:
        return self._records.get(key)

    def records(self) -> list[StoredRecord]:
        return list(self._records.values())

    def mark_failed(self, key: str, selector: str) -> None:
        record = self._records.get(key)
        if record is None:
            return
        changed = False
        for candidate in record.candidates:
            if candidate.selector == selector:
                candidate.fail_count += 1
                changed = True
        if changed:
            self._persist()

    def evict_stale(self, retention_days: int | None = None) -> int:
        days = self.retention_days if retention_days is None else retention_days
        cutoff = utc_now() - timedelta(days=days)
        stale = [key for key, record in self._records.items() if record.updated_at < cutoff]
        for key in stale:
            del self._records[key]
        if stale:
            self.logger.info("Cleaned up %s stale records", len(stale))
            self._persist()
        return len(stale)

    def _load(self) -> dict[str, StoredRecord]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return _RECORDS.validate_python(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            self.logger.warning("Ignoring unreadable store %s: %s", self.path, exc)
            return {}

    def _persist(self) -> None:
        payload = {
            key: record.model_dump(mode="json", by_alias=True)
            for key, record in self._records.items()
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle, temp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        except OSError as exc:
            self.logger.error("Could not write store %s: %s", self.path, exc)
            return
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                json.dump(payload, stream, indent=2)
            os.replace(temp_path, self.path)
        except OSError as exc:
            Path(temp_path).unlink(missing_ok=True)
            self.logger.error("Could not write store %s: %s", self.path, exc)
