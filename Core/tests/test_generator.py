from __future__ import annotations

import logging

from selfheal.core.generator import HeuristicCandidateGenerator
from selfheal.core.metadata import ElementSnapshot, ParentSignature, StoredRecord
from selfheal.core.static_document import HtmlDocument
from selfheal.core.validation import UniquenessValidator
from tests.helpers import FakeSynonymService

AMBIGUOUS_MARKUP = """
<html><body>
  <form id="editor">
    <button id="save" class="btn">Save</button>
    <button class="btn">Cancel</button>
  </form>
</body></html>
"""


def make_generator(document, logger, synonyms=None) -> HeuristicCandidateGenerator:
    validator = UniquenessValidator(document, logger)
    return HeuristicCandidateGenerator(document, validator, synonyms or FakeSynonymService(), logger)


def stored_login_button() -> ElementSnapshot:
    return ElementSnapshot(
        tag="button",
        text="Login",
        attributes={"id": "loginBtn", "class": "btn"},
        parent=ParentSignature(tag="form", id="loginForm"),
    )


def test_candidates_are_unique_and_ranked(login_document, healing_logger):
    generator = make_generator(login_document, healing_logger)
    candidates = generator.generate("#loginBtn")

    assert candidates[0].selector == "#loginBtn"
    assert candidates[0].score == 95
    assert candidates[-1].type == "absolute-xpath"
    scores = [candidate.score for candidate in candidates]
    assert scores == sorted(scores, reverse=True)
    assert len({candidate.selector for candidate in candidates}) == len(candidates)
    for candidate in candidates:
        assert login_document.count(candidate.selector) == 1
    types = {candidate.type for candidate in candidates}
    assert {"css-class", "css-attr", "xpath-text", "css-nth-child", "xpath-nth"} <= types


def test_ambiguous_candidates_are_discarded(healing_logger, caplog):
    caplog.set_level(logging.DEBUG)
    document = HtmlDocument(AMBIGUOUS_MARKUP)
    candidates = make_generator(document, healing_logger).generate("#save")

    selectors = {candidate.selector for candidate in candidates}
    assert ".btn" not in selectors
    assert "button.btn" not in selectors
    assert "button" not in selectors
    assert "#save" in selectors
    assert "[DISCARD ambiguous=2] css-class -> .btn" in caplog.text


def test_synonyms_are_deduplicated_and_limited(login_document, healing_logger):
    synonyms = FakeSynonymService({"Login": ["Login", "sign in", "Sign In", "log in", "enter", "access"]})
    generator = make_generator(login_document, healing_logger, synonyms)
    assert generator.synonyms_for("Login") == ["sign in", "log in", "enter"]


def test_synonym_candidates_carry_fixed_score(healing_logger):
    document = HtmlDocument(
        "<html><body><button id='go'>Login</button><button>sign in</button></body></html>"
    )
    synonyms = FakeSynonymService({"Login": ["sign in"]})
    candidates = make_generator(document, healing_logger, synonyms).generate("#go")

    synonym_candidates = [candidate for candidate in candidates if "synonym" in candidate.type]
    assert synonym_candidates
    assert all(candidate.score == 35 for candidate in synonym_candidates)


def test_missing_reference_falls_back_to_similar_text(healing_logger):
    document = HtmlDocument(
        "<html><body><form><button type='submit'>Login</button></form></body></html>"
    )
    generator = make_generator(document, healing_logger)
    candidates = generator.generate("//button[text()='Log in']")

    assert candidates
    assert document.text_of(document.first(candidates[0].selector)) == "Login"


def test_missing_reference_without_close_match_yields_nothing(healing_logger):
    document = HtmlDocument(
        "<html><body><form><button type='button'>Login</button></form></body></html>"
    )
    generator = make_generator(document, healing_logger)
    assert generator.generate("//button[text()='Delete account']") == []


def test_regenerate_probes_parent_and_prefers_closest_text(healing_logger):
    document = HtmlDocument(
        """
        <html><body><form id="loginForm">
          <button>Cancel</button>
          <button>Login now</button>
        </form></body></html>
        """
    )
    record = StoredRecord(original_key="#loginBtn", healed_selector="#loginBtn", snapshot=stored_login_button())
    candidates = make_generator(document, healing_logger).regenerate("#loginBtn", record, target_present=False)

    assert candidates
    assert document.text_of(document.first(candidates[0].selector)) == "Login now"


def test_regenerate_widens_to_children_when_tag_changes(healing_logger):
    document = HtmlDocument(
        """
        <html><body><form id="loginForm">
          <span>Welcome back</span>
          <div data-qa="loginBtn">Sign In</div>
        </form></body></html>
        """
    )
    record = StoredRecord(original_key="#loginBtn", healed_selector="#loginBtn", snapshot=stored_login_button())
    candidates = make_generator(document, healing_logger).regenerate("#loginBtn", record, target_present=False)

    selectors = [candidate.selector for candidate in candidates]
    assert '[data-qa="loginBtn"]' in selectors
    assert document.text_of(document.first(candidates[0].selector)) == "Sign In"


def test_regenerate_matches_text_when_tag_changes(healing_logger):
    document = HtmlDocument(
        "<html><body><form id='loginForm'><a class='link'>Login</a></form></body></html>"
    )
    record = StoredRecord(original_key="#loginBtn", healed_selector="#loginBtn", snapshot=stored_login_button())
    candidates = make_generator(document, healing_logger).regenerate("#loginBtn", record, target_present=False)

    assert candidates
    assert document.snapshot(document.first(candidates[0].selector)).tag == "a"


def test_regenerate_without_record_uses_reference(login_document, healing_logger):
    generator = make_generator(login_document, healing_logger)
    candidates = generator.regenerate("#loginBtn", None, target_present=True)
    assert candidates[0].selector == "#loginBtn"


def test_children_scan_prefers_text_over_shared_generic_attributes(healing_logger):
    document = HtmlDocument(
        """
        <html><body><form id="loginForm">
          <input type="submit" value="Go">
          <span class="cta">Login</span>
        </form></body></html>
        """
    )
    stored = ElementSnapshot(
        tag="button",
        text="Login",
        attributes={"id": "loginBtn", "type": "submit"},
        parent=ParentSignature(tag="form", id="loginForm"),
    )
    record = StoredRecord(original_key="#loginBtn", healed_selector="#loginBtn", snapshot=stored)
    candidates = make_generator(document, healing_logger).regenerate("#loginBtn", record, target_present=False)

    assert candidates
    assert document.text_of(document.first(candidates[0].selector)) == "Login"


def test_children_scan_ignores_generic_attribute_overlap(healing_logger):
    document = HtmlDocument(
        "<html><body><form id='loginForm'><input type='submit' value='Go'></form></body></html>"
    )
    stored = ElementSnapshot(
        tag="button",
        text="Login",
        attributes={"type": "submit"},
        parent=ParentSignature(tag="form", id="loginForm"),
    )
    generator = make_generator(document, healing_logger)
    assert generator.probe_stored_snapshot(stored) is None


def test_children_scan_tries_synonyms_before_attributes(healing_logger):
    document = HtmlDocument(
        """
        <html><body><form id="loginForm">
          <div data-qa="loginBtn">Continue</div>
          <a>Sign In</a>
        </form></body></html>
        """
    )
    synonyms = FakeSynonymService({"Login": ["sign in"]})
    generator = make_generator(document, healing_logger, synonyms)
    element = generator.probe_stored_snapshot(stored_login_button())

    assert document.text_of(element) == "Sign In"


def test_volatile_classes_never_form_class_candidates(healing_logger):
    document = HtmlDocument(
        "<html><body><nav><button id='menu' class='btn active is-open'>Menu</button></nav></body></html>"
    )
    candidates = make_generator(document, healing_logger).generate("#menu")

    selectors = [candidate.selector for candidate in candidates]
    assert ".btn" in selectors
    for selector in selectors:
        assert "active" not in selector
        assert "is-open" not in selector
