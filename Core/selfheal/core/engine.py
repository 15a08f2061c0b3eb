from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from selfheal.core.document import DocumentQueryEngine
from selfheal.core.exceptions import ResolutionExhaustedError
from selfheal.core.generator import CandidateGenerator
from selfheal.core.metadata import Candidate, ElementSnapshot, ResolutionAttempt, StoredRecord
from selfheal.core.validation import MatchOutcome, UniquenessValidator
from selfheal.logging.audit import ResolutionAuditLogger
from selfheal.store.candidate_store import CandidateStore
from selfheal.utils.scoring import heuristic_score, string_similarity


class ResolutionState(str, Enum):
    TRY_ORIGINAL = "try_original"
    TRY_CACHE = "try_cache"
    REGENERATE = "regenerate"
    SIMILARITY_FALLBACK = "similarity_fallback"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(slots=True)
class Resolution:
    reference: str
    selector: str
    element: Any
    state: ResolutionState
    candidates: list[Candidate] = field(default_factory=list)


@dataclass(slots=True)
class _Lookup:
    reference: str
    record: StoredRecord | None = None
    target_present: bool = False
    resolution: Resolution | None = None
    candidate_count: int = 0


class ResolutionEngine:
    """Resolves a reference to a live element.

    Tiers run in order: the original reference, stored candidates, candidates
    regenerated from stored metadata, then a similarity scan over the inferred
    tag. Every success is written through to the store.
    """

    def __init__(
        self,
        document: DocumentQueryEngine,
        generator: CandidateGenerator,
        store: CandidateStore,
        validator: UniquenessValidator,
        logger: logging.Logger | None = None,
        audit_logger: ResolutionAuditLogger | None = None,
        candidate_visibility_timeout: float | None = 1.5,
        original_visibility_timeout: float | None = None,
    ) -> None:
        self.document = document
        self.generator = generator
        self.store = store
        self.validator = validator
        self.logger = logger or logging.getLogger(__name__)
        self.audit_logger = audit_logger
        self.candidate_visibility_timeout = candidate_visibility_timeout
        if original_visibility_timeout is None:
            original_visibility_timeout = generator.original_visibility_timeout
        self.original_visibility_timeout = original_visibility_timeout
        self._handlers = {
            ResolutionState.TRY_ORIGINAL: self._try_original,
            ResolutionState.TRY_CACHE: self._try_cache,
            ResolutionState.REGENERATE: self._regenerate,
            ResolutionState.SIMILARITY_FALLBACK: self._similarity_fallback,
        }

    def find(self, reference: str):
        return self.resolve(reference).element

    def resolve(self, reference: str) -> Resolution:
        lookup = _Lookup(reference)
        state = ResolutionState.TRY_ORIGINAL
        last_state = state
        while state in self._handlers:
            last_state = state
            state = self._handlers[state](lookup)

        resolution = lookup.resolution
        self._audit(lookup, last_state, resolution)
        if state is ResolutionState.FAILED or resolution is None:
            self.logger.error("Could not find locator: %s", reference)
            raise ResolutionExhaustedError(reference)
        return resolution

    def generate_candidates(self, reference: str) -> list[Candidate]:
        """Scored, validated candidates for a reference, without touching the store."""

        return self.generator.generate(reference)

    def _try_original(self, lookup: _Lookup) -> ResolutionState:
        reference = lookup.reference
        result = self.validator.check(reference)
        lookup.target_present = result.count > 0
        if result.outcome is MatchOutcome.AMBIGUOUS:
            self.logger.info("Original locator matched %s elements: %s", result.count, reference)
            return ResolutionState.TRY_CACHE
        if not result.is_unique:
            return ResolutionState.TRY_CACHE

        element = self._live_element(reference, self.original_visibility_timeout)
        if element is None:
            self.logger.info("Original locator is present but not visible: %s", reference)
            return ResolutionState.TRY_CACHE

        self.logger.info("Original locator still works: %s", reference)
        snapshot = self.document.snapshot(element)
        candidates = self.generator.bookkeeping(reference, element)
        self.store.save(reference, reference, candidates, snapshot)
        lookup.candidate_count = len(candidates)
        lookup.resolution = Resolution(reference, reference, element, ResolutionState.TRY_ORIGINAL, candidates)
        return ResolutionState.RESOLVED

    def _try_cache(self, lookup: _Lookup) -> ResolutionState:
        reference = lookup.reference
        self.logger.info("Fallback: checking stored records for '%s'", reference)
        lookup.record = self.store.peek(reference)
        if lookup.record is None:
            self.logger.info("Healing required for: %s", reference)
            return ResolutionState.REGENERATE

        current = self._current_snapshot(reference, lookup.record)
        cached = self.store.get(reference, current)
        if cached is None:
            self.logger.info("[Meta changed] Refreshing with stored meta for '%s'", reference)
            return ResolutionState.REGENERATE

        self.logger.info("[Meta matched] Using stored candidates for: %s", reference)
        for candidate in list(cached.candidates):
            if not self.validator.is_unique(candidate.selector):
                self.logger.warning("Stored candidate no longer unique: %s", candidate.selector)
                self.store.mark_failed(reference, candidate.selector)
                continue
            element = self._live_element(candidate.selector, self.candidate_visibility_timeout)
            if element is None:
                self.logger.warning("Stored candidate failed: %s", candidate.selector)
                self.store.mark_failed(reference, candidate.selector)
                continue
            similarity = string_similarity(cached.snapshot.text, self.document.text_of(element))
            combined = heuristic_score(candidate, cached.snapshot) + similarity * 100
            self.logger.info("[Recovered] '%s' -> '%s' (score=%.1f)", reference, candidate.selector, combined)
            self.store.save(reference, candidate.selector, cached.candidates, current)
            lookup.candidate_count = len(cached.candidates)
            lookup.resolution = Resolution(
                reference, candidate.selector, element, ResolutionState.TRY_CACHE, list(cached.candidates)
            )
            return ResolutionState.RESOLVED

        self.logger.info("Stored candidates exhausted for '%s'", reference)
        return ResolutionState.REGENERATE

    def _regenerate(self, lookup: _Lookup) -> ResolutionState:
        self.logger.info("[Refreshing] Regenerating candidates for: %s", lookup.reference)
        candidates = self.generator.regenerate(lookup.reference, lookup.record, lookup.target_present)
        if self._settle(lookup, candidates, ResolutionState.REGENERATE):
            return ResolutionState.RESOLVED
        return ResolutionState.SIMILARITY_FALLBACK

    def _similarity_fallback(self, lookup: _Lookup) -> ResolutionState:
        self.logger.info("'%s' not found. Trying safe fallback...", lookup.reference)
        candidates = self.generator.similarity_fallback(lookup.reference, lookup.record)
        if self._settle(lookup, candidates, ResolutionState.SIMILARITY_FALLBACK):
            return ResolutionState.RESOLVED
        return ResolutionState.FAILED

    def _settle(self, lookup: _Lookup, candidates: list[Candidate], state: ResolutionState) -> bool:
        """Adopts the first candidate with a unique visible match and writes it through."""

        lookup.candidate_count = len(candidates)
        for candidate in candidates:
            if not self.validator.is_unique(candidate.selector):
                continue
            element = self._live_element(candidate.selector, self.candidate_visibility_timeout)
            if element is None:
                self.logger.warning("Regenerated candidate failed: %s", candidate.selector)
                continue
            self.logger.info("[Healed] '%s' -> '%s'", lookup.reference, candidate.selector)
            self.store.save(lookup.reference, candidate.selector, candidates, self.document.snapshot(element))
            lookup.resolution = Resolution(lookup.reference, candidate.selector, element, state, candidates)
            return True
        return False

    def _current_snapshot(self, reference: str, record: StoredRecord) -> ElementSnapshot | None:
        for selector in (reference, record.healed_selector):
            if selector and self.validator.is_unique(selector):
                element = self.document.first(selector)
                if element is not None:
                    return self.document.snapshot(element)
        return None

    def _live_element(self, selector: str, timeout: float | None):
        # None skips the visibility probe; zero probes once without waiting.
        if timeout is None:
            return self.document.first(selector)
        return self.document.wait_visible(selector, timeout)

    def _audit(self, lookup: _Lookup, state: ResolutionState, resolution: Resolution | None) -> None:
        if self.audit_logger is None:
            return
        self.audit_logger.write(
            ResolutionAttempt(
                reference=lookup.reference,
                tier=(resolution.state if resolution else state).value,
                selector=resolution.selector if resolution else "",
                success=resolution is not None,
                candidate_count=lookup.candidate_count,
            )
        )
