from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class ParentSignature(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag: str = ""
    id: str | None = None
    class_name: str | None = Field(default=None, alias="class")


class ElementSnapshot(BaseModel):
    """Structural and textual description of an element at capture time."""

    model_config = ConfigDict(frozen=True)

    tag: str
    text: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)
    aria_label: str = ""
    role: str = ""
    parent: ParentSignature | None = None

    def matches(self, other: ElementSnapshot | None) -> bool:
        if other is None:
            return False
        return (
            self.tag == other.tag
            and self.text == other.text
            and self.aria_label == other.aria_label
            and self.role == other.role
            and self.attributes == other.attributes
            and self.parent == other.parent
        )


class Candidate(BaseModel):
    type: str
    selector: str
    score: float | None = None
    observed_at: datetime = Field(default_factory=utc_now)
    fail_count: int = 0

    @field_validator("observed_at")
    @classmethod
    def observed_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class StoredRecord(BaseModel):
    original_key: str
    healed_selector: str | None = None
    candidates: list[Candidate] = Field(default_factory=list)
    snapshot: ElementSnapshot
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("updated_at")
    @classmethod
    def updated_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


@dataclass(slots=True)
class SiblingPosition:
    parent_tag: str
    child_index: int
    type_index: int


@dataclass(slots=True)
class ResolutionAttempt:
    reference: str
    tier: str
    selector: str
    success: bool
    candidate_count: int = 0
    timestamp: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "reference": self.reference,
            "tier": self.tier,
            "selector": self.selector,
            "success": self.success,
            "candidate_count": self.candidate_count,
            "timestamp": (self.timestamp or utc_now()).isoformat(),
        }
