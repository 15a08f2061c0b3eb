from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from selfheal.core.document import DocumentQueryEngine
from selfheal.core.exceptions import InvalidExpressionError
from selfheal.core.metadata import Candidate


class MatchOutcome(str, Enum):
    UNIQUE = "unique"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass(slots=True)
class ValidationResult:
    selector: str
    outcome: MatchOutcome
    count: int = 0

    @property
    def is_unique(self) -> bool:
        return self.outcome is MatchOutcome.UNIQUE


class UniquenessValidator:
    """Classifies selectors by how many live elements they match."""

    def __init__(self, document: DocumentQueryEngine, logger: logging.Logger | None = None) -> None:
        self.document = document
        self.logger = logger or logging.getLogger(__name__)

    def check(self, selector: str) -> ValidationResult:
        try:
            count = self.document.count(selector)
        except InvalidExpressionError as exc:
            self.logger.debug("Invalid selector %s: %s", selector, exc)
            return ValidationResult(selector, MatchOutcome.INVALID)
        if count == 1:
            return ValidationResult(selector, MatchOutcome.UNIQUE, count)
        if count > 1:
            return ValidationResult(selector, MatchOutcome.AMBIGUOUS, count)
        return ValidationResult(selector, MatchOutcome.NOT_FOUND)

    def is_unique(self, selector: str) -> bool:
        return self.check(selector).is_unique

    def unique_only(self, candidates: Iterable[Candidate], label: str = "candidate") -> list[Candidate]:
        """Keeps unique candidates, deduplicated by selector string."""

        kept: dict[str, Candidate] = {}
        for candidate in candidates:
            if candidate.selector in kept:
                continue
            result = self.check(candidate.selector)
            if result.is_unique:
                kept[candidate.selector] = candidate
            else:
                self.logger.warning(
                    "Dropping %s %s (%s, matches=%s)",
                    label,
                    candidate.selector,
                    result.outcome.value,
                    result.count,
                )
        return list(kept.values())
