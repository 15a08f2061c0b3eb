from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from selfheal.core.document import DocumentQueryEngine
from selfheal.core.exceptions import InvalidExpressionError
from selfheal.core.metadata import Candidate, ElementSnapshot, StoredRecord
from selfheal.core.validation import MatchOutcome, UniquenessValidator
from selfheal.services.synonyms import NullSynonymService, SynonymService
from selfheal.utils.scoring import SYNONYM_SCORE, heuristic_score, is_volatile_class, string_similarity
from selfheal.utils.selectors import (
    css_identifier,
    css_string,
    extract_parent_class,
    extract_parent_id,
    extract_text_literal,
    infer_tag,
    xpath_literal,
)

MAX_LITERAL_LENGTH = 50
SUBSTITUTE_THRESHOLD = 0.6
SUBMIT_BONUS = 0.3
PARENT_ID_BONUS = 0.4
PARENT_CLASS_BONUS = 0.3
DEDICATED_ATTRIBUTES = frozenset({"id", "name", "class", "aria-label", "role"})
GENERIC_ATTRIBUTES = frozenset({"class", "type", "value", "placeholder", "style", "tabindex", "hidden", "disabled"})


class CandidateGenerator(ABC):
    """Produces alternative locators for a reference; plugged into the resolution engine."""

    name = "unknown"
    original_visibility_timeout: float | None = None

    @abstractmethod
    def generate(self, reference: str) -> list[Candidate]:
        raise NotImplementedError

    @abstractmethod
    def regenerate(self, reference: str, record: StoredRecord | None, target_present: bool) -> list[Candidate]:
        raise NotImplementedError

    def bookkeeping(self, reference: str, element) -> list[Candidate]:
        return self.generate(reference)

    def similarity_fallback(self, reference: str, record: StoredRecord | None) -> list[Candidate]:
        return []


class HeuristicCandidateGenerator(CandidateGenerator):
    """Derives candidates from structural signals of the resolved element."""

    name = "heuristic"

    def __init__(
        self,
        document: DocumentQueryEngine,
        validator: UniquenessValidator,
        synonyms: SynonymService | None = None,
        logger: logging.Logger | None = None,
        synonym_limit: int = 3,
    ) -> None:
        self.document = document
        self.validator = validator
        self.synonyms = synonyms or NullSynonymService()
        self.logger = logger or logging.getLogger(__name__)
        self.synonym_limit = synonym_limit

    def generate(self, reference: str) -> list[Candidate]:
        element = self.document.first(reference)
        if element is None:
            self.logger.info("'%s' not found. Trying safe fallback...", reference)
            element = self.find_substitute(reference)
            if element is None:
                return []
        return self.candidates_for(element)

    def bookkeeping(self, reference: str, element) -> list[Candidate]:
        return self.candidates_for(element)

    def regenerate(self, reference: str, record: StoredRecord | None, target_present: bool) -> list[Candidate]:
        if record is not None:
            element = self.probe_stored_snapshot(record.snapshot)
            if element is not None:
                candidates = self.candidates_for(element)
                if candidates:
                    return candidates
        element = self.document.first(reference)
        if element is None:
            return []
        return self.candidates_for(element)

    def similarity_fallback(self, reference: str, record: StoredRecord | None) -> list[Candidate]:
        """Whole-tag scan for the element most similar to what the reference named."""

        element = self.find_substitute(reference, text_hint=record.snapshot.text if record else "")
        if element is None:
            return []
        return self.candidates_for(element)

    def candidates_for(self, element) -> list[Candidate]:
        snapshot = self.document.snapshot(element)
        tag = snapshot.tag
        attributes = snapshot.attributes
        kept: list[Candidate] = []

        identity = attributes.get("id", "")
        if identity:
            self._add(kept, "css-id", f"#{css_identifier(identity)}")
            self._add(kept, "css-tag-id", f"{tag}#{css_identifier(identity)}")
            self._add(kept, "xpath-id", f"//{tag}[@id={xpath_literal(identity)}]")

        name = attributes.get("name", "")
        if name:
            self._add(kept, "css-name", f"[name={css_string(name)}]")
            self._add(kept, "css-tag-name", f"{tag}[name={css_string(name)}]")
            self._add(kept, "xpath-name", f"//{tag}[@name={xpath_literal(name)}]")

        for token in self._stable_classes(attributes.get("class", "")):
            self._add(kept, "css-class", f".{css_identifier(token)}")
            self._add(kept, "css-tag-class", f"{tag}.{css_identifier(token)}")
            self._add(kept, "xpath-class", f"//{tag}[contains(@class, {xpath_literal(token)})]")

        self._add(kept, "css-tag", tag)

        for key, value in attributes.items():
            if key in DEDICATED_ATTRIBUTES or not value or len(value) >= MAX_LITERAL_LENGTH:
                continue
            self._add(kept, "css-attr", f"[{key}={css_string(value)}]")
            self._add(kept, "css-tag-attr", f"{tag}[{key}={css_string(value)}]")
            self._add(kept, "xpath-attr", f"//{tag}[@{key}={xpath_literal(value)}]")

        text = snapshot.text
        if text and len(text) < MAX_LITERAL_LENGTH:
            self._add(kept, "xpath-text", f"//{tag}[normalize-space(text())={xpath_literal(text)}]")
            self._add(kept, "xpath-contains-text", f"//{tag}[contains(normalize-space(.), {xpath_literal(text)})]")
            for synonym in self.synonyms_for(text):
                self.logger.debug("[SYNONYM] Trying '%s'", synonym)
                literal = xpath_literal(synonym)
                self._add(kept, "xpath-synonym-text", f"//{tag}[normalize-space(text())={literal}]", SYNONYM_SCORE)
                self._add(
                    kept,
                    "xpath-synonym-contains",
                    f"//{tag}[contains(normalize-space(.), {literal})]",
                    SYNONYM_SCORE,
                )

        if snapshot.aria_label:
            self._add(kept, "css-aria", f"[aria-label={css_string(snapshot.aria_label)}]")
            self._add(kept, "css-tag-aria", f"{tag}[aria-label={css_string(snapshot.aria_label)}]")

        if snapshot.role:
            self._add(kept, "css-role", f"[role={css_string(snapshot.role)}]")
            self._add(kept, "css-tag-role", f"{tag}[role={css_string(snapshot.role)}]")
            self._add(kept, "xpath-role", f"//*[@role={xpath_literal(snapshot.role)}]")

        position = self.document.sibling_position(element)
        if position is not None:
            self._add(kept, "css-nth-child", f"{position.parent_tag} > {tag}:nth-child({position.child_index})")
            self._add(kept, "xpath-nth", f"//{position.parent_tag}/{tag}[{position.type_index}]")

        absolute = self.document.absolute_path(element)
        if absolute:
            self._add(kept, "absolute-xpath", absolute)

        scored = [
            candidate if candidate.score is not None
            else candidate.model_copy(update={"score": heuristic_score(candidate, snapshot)})
            for candidate in kept
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        self.logger.debug("=== Final Candidates ===")
        for candidate in scored:
            self.logger.debug("[Score %s] %s -> %s", candidate.score, candidate.type, candidate.selector)
        return scored

    def synonyms_for(self, text: str) -> list[str]:
        original = text.strip().lower()
        seen: set[str] = set()
        limited: list[str] = []
        for word in self.synonyms.lookup(text):
            normalized = word.strip().lower()
            if not normalized or normalized == original or normalized in seen:
                continue
            seen.add(normalized)
            limited.append(normalized)
            if len(limited) >= self.synonym_limit:
                break
        return limited

    def find_substitute(self, reference: str, text_hint: str = ""):
        """Best-effort replacement for a reference that matches nothing."""

        expected_text = (extract_text_literal(reference) or text_hint).lower()
        expected_parent_id = extract_parent_id(reference)
        expected_parent_class = extract_parent_class(reference)
        tag = infer_tag(reference)

        best_element = None
        best_score = 0.0
        for element in self.document.elements_by_tag(tag):
            snapshot = self.document.snapshot(element)
            if not snapshot.text:
                continue
            score = string_similarity(expected_text, snapshot.text) if expected_text else 0.0
            if snapshot.attributes.get("type", "").lower() == "submit":
                score += SUBMIT_BONUS
            parent = snapshot.parent
            if parent is not None:
                if expected_parent_id and parent.id == expected_parent_id:
                    score += PARENT_ID_BONUS
                if expected_parent_class and expected_parent_class in (parent.class_name or "").split():
                    score += PARENT_CLASS_BONUS
            if score > best_score:
                best_score = score
                best_element = element

        if best_element is not None and best_score >= SUBSTITUTE_THRESHOLD:
            self.logger.info("Fallback chose <%s> element with score %.2f", tag, best_score)
            return best_element
        self.logger.info("No valid replacement found for '%s'", reference)
        return None

    def probe_stored_snapshot(self, snapshot: ElementSnapshot):
        """Locates the element a stored snapshot most plausibly became."""

        parent_selector = self._parent_selector(snapshot)
        if not parent_selector:
            return None
        probe = f"{parent_selector} {snapshot.tag}"
        self.logger.info("Refreshing with stored metadata via '%s'", probe)
        try:
            matches = self.document.find_all(probe)
        except InvalidExpressionError:
            matches = []
        if matches:
            return max(matches, key=lambda item: string_similarity(snapshot.text, self.document.text_of(item)))

        substitute = self.find_substitute(probe, text_hint=snapshot.text)
        if substitute is not None:
            return substitute

        self.logger.info("Tag mismatch, scanning all children of %s", parent_selector)
        return self._scan_children(parent_selector, snapshot)

    def _scan_children(self, parent_selector: str, stored: ElementSnapshot):
        try:
            children = self.document.find_all(f"{parent_selector} *")
        except InvalidExpressionError:
            return None
        stored_text = stored.text.lower()

        # Text, ARIA and role outrank synonyms; shared attribute values come last.
        for child in children:
            text = self.document.text_of(child).lower()
            if stored_text and text and stored_text in text:
                return self._replacement(parent_selector, child, "text")
            attributes = self.document.attributes_of(child)
            if stored.aria_label and attributes.get("aria-label") == stored.aria_label:
                return self._replacement(parent_selector, child, "aria-label")
            if stored.role and attributes.get("role") == stored.role:
                return self._replacement(parent_selector, child, "role")

        if stored_text:
            synonyms = self.synonyms_for(stored.text)
            for child in children:
                if self.document.text_of(child).lower() in synonyms:
                    return self._replacement(parent_selector, child, "synonym")

        stored_values = _identifying_values(stored.attributes)
        if stored_values:
            for child in children:
                if stored_values & _identifying_values(self.document.attributes_of(child)):
                    return self._replacement(parent_selector, child, "attribute")
        return None

    def _replacement(self, parent_selector: str, element, signal: str):
        self.logger.info("Found possible replacement under %s by %s", parent_selector, signal)
        return element

    def _parent_selector(self, snapshot: ElementSnapshot) -> str:
        parent = snapshot.parent
        if parent is None:
            return ""
        if parent.id:
            return f"#{css_identifier(parent.id)}"
        stable = self._stable_classes(parent.class_name or "")
        if stable:
            return f".{css_identifier(stable[0])}"
        return parent.tag

    @staticmethod
    def _stable_classes(class_attribute: str) -> list[str]:
        tokens: list[str] = []
        for token in class_attribute.split():
            if token and not is_volatile_class(token) and token not in tokens:
                tokens.append(token)
        return tokens

    def _add(self, kept: list[Candidate], category: str, selector: str, score: float | None = None) -> None:
        if any(candidate.selector == selector for candidate in kept):
            return
        result = self.validator.check(selector)
        if result.outcome is MatchOutcome.UNIQUE:
            self.logger.debug("[KEEP] %s -> %s", category, selector)
            kept.append(Candidate(type=category, selector=selector, score=score))
        elif result.outcome is MatchOutcome.AMBIGUOUS:
            self.logger.debug("[DISCARD ambiguous=%s] %s -> %s", result.count, category, selector)
        elif result.outcome is MatchOutcome.NOT_FOUND:
            self.logger.debug("[DISCARD not found] %s -> %s", category, selector)
        else:
            self.logger.debug("[DISCARD invalid] %s -> %s", category, selector)


def _identifying_values(attributes: dict[str, str]) -> set[str]:
    return {value for key, value in attributes.items() if key not in GENERIC_ATTRIBUTES and value}
