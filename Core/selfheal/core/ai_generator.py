from __future__ import annotations

import logging

from selfheal.core.document import DocumentQueryEngine
from selfheal.core.exceptions import HealingError
from selfheal.core.generator import CandidateGenerator
from selfheal.core.metadata import Candidate, StoredRecord
from selfheal.core.validation import UniquenessValidator
from selfheal.llm.client import LocatorSuggestionClient
from selfheal.llm.parser import parse_candidate_response
from selfheal.utils.dom_extract import build_dom_snippet
from selfheal.utils.scoring import heuristic_score


class GenerativeCandidateGenerator(CandidateGenerator):
    """Delegates candidate proposals to a generative locator service."""

    name = "ai"
    original_visibility_timeout = 2.0

    def __init__(
        self,
        document: DocumentQueryEngine,
        validator: UniquenessValidator,
        client: LocatorSuggestionClient,
        logger: logging.Logger | None = None,
        max_snippet_chars: int = 12000,
    ) -> None:
        self.document = document
        self.validator = validator
        self.client = client
        self.logger = logger or logging.getLogger(__name__)
        self.max_snippet_chars = max_snippet_chars

    def generate(self, reference: str) -> list[Candidate]:
        element = self.document.first(reference)
        if element is None:
            return self._suggest(self.document.page_source(), reference, "regeneration")
        return self.bookkeeping(reference, element)

    def bookkeeping(self, reference: str, element) -> list[Candidate]:
        return self._suggest(self.document.parent_markup(element), reference, "element exists")

    def regenerate(self, reference: str, record: StoredRecord | None, target_present: bool) -> list[Candidate]:
        if target_present:
            element = self.document.first(reference)
            if element is not None:
                return self.bookkeeping(reference, element)
        self.logger.warning("No elements found for %s. Regenerating from full DOM.", reference)
        return self._suggest(self.document.page_source(), reference, "regeneration")

    def _suggest(self, markup: str, reference: str, context: str) -> list[Candidate]:
        snippet = build_dom_snippet(markup, self.max_snippet_chars)
        try:
            raw = self.client.suggest_locators(snippet, reference)
            proposed = parse_candidate_response(raw)
        except HealingError as exc:
            self.logger.error("Locator suggestion failed (%s): %s", context, exc)
            return []
        self.logger.debug(
            "Raw suggested candidates (%s): %s",
            context,
            ", ".join(candidate.selector for candidate in proposed),
        )
        validated = self.validator.unique_only(proposed, label="suggested candidate")
        return [
            candidate if candidate.score is not None
            else candidate.model_copy(update={"score": heuristic_score(candidate)})
            for candidate in validated
        ]
