from __future__ import annotations

import pytest

from selfheal.core.engine import ResolutionState
from selfheal.core.exceptions import ResolutionExhaustedError
from selfheal.core.generator import CandidateGenerator
from selfheal.core.metadata import Candidate
from selfheal.llm.client import OpenAILocatorClient
from selfheal.services.synonyms import DatamuseSynonymService
from tests.helpers import hanging_up_server

LOGIN_WITHOUT_ID = """
<html><body>
  <form id="loginForm" class="auth-form">
    <input id="email" name="email" type="email">
    <button class="btn primary" type="submit">Login</button>
    <span class="ghost" hidden>Login</span>
  </form>
</body></html>
"""

LOGIN_WITH_DIV = """
<html><body>
  <form id="loginForm" class="auth-form">
    <input id="email" name="email" type="email">
    <div data-qa="loginBtn">Sign In</div>
  </form>
</body></html>
"""


class SpyGenerator(CandidateGenerator):
    name = "spy"

    def __init__(self) -> None:
        self.calls: list[str] = []

    def generate(self, reference):
        self.calls.append("generate")
        return []

    def regenerate(self, reference, record, target_present):
        self.calls.append("regenerate")
        return []

    def bookkeeping(self, reference, element):
        self.calls.append("bookkeeping")
        return []


def test_original_reference_resolves_and_is_recorded(engine_factory, login_markup):
    document, engine = engine_factory(login_markup)

    resolution = engine.resolve("#loginBtn")

    assert resolution.state is ResolutionState.TRY_ORIGINAL
    assert resolution.element is document.first("#loginBtn")
    record = engine.store.peek("#loginBtn")
    assert record.healed_selector == "#loginBtn"
    assert record.candidates[0].selector == "#loginBtn"
    assert record.snapshot.text == "Login"
    assert engine.store.path.exists()


def test_cached_candidates_resolve_without_generation(engine_factory):
    document, engine = engine_factory(LOGIN_WITHOUT_ID)
    button = document.first("//form/button[1]")
    engine.store.save(
        "#loginBtn",
        "//form/button[1]",
        [Candidate(type="css-class", selector=".primary", score=70)],
        document.snapshot(button),
    )
    spy = SpyGenerator()
    engine.generator = spy

    resolution = engine.resolve("#loginBtn")

    assert resolution.state is ResolutionState.TRY_CACHE
    assert resolution.selector == ".primary"
    assert resolution.element is button
    assert spy.calls == []
    assert engine.store.peek("#loginBtn").healed_selector == ".primary"


def test_cached_candidate_that_fails_is_marked(engine_factory):
    document, engine = engine_factory(LOGIN_WITHOUT_ID)
    engine.store.save(
        "#loginBtn",
        ".primary",
        [
            Candidate(type="css-class", selector=".ghost", score=70),
            Candidate(type="css-class", selector=".primary", score=70),
        ],
        document.snapshot(document.first(".primary")),
    )

    resolution = engine.resolve("#loginBtn")

    assert resolution.selector == ".primary"
    failed = {candidate.selector: candidate.fail_count for candidate in engine.store.peek("#loginBtn").candidates}
    assert failed[".ghost"] == 1
    assert failed[".primary"] == 0


def test_changed_tag_is_healed_from_stored_metadata(engine_factory, login_markup):
    document, engine = engine_factory(login_markup)
    engine.find("#loginBtn")

    document.replace(LOGIN_WITH_DIV)
    resolution = engine.resolve("#loginBtn")

    assert resolution.state is ResolutionState.REGENERATE
    assert document.text_of(resolution.element) == "Sign In"
    record = engine.store.peek("#loginBtn")
    assert record.snapshot.tag == "div"
    assert record.healed_selector == resolution.selector
    assert document.count(record.healed_selector) == 1


def test_healed_reference_is_served_from_cache_next_time(engine_factory, login_markup):
    document, engine = engine_factory(login_markup)
    engine.find("#loginBtn")
    document.replace(LOGIN_WITH_DIV)
    engine.find("#loginBtn")

    resolution = engine.resolve("#loginBtn")

    assert resolution.state is ResolutionState.TRY_CACHE
    assert document.text_of(resolution.element) == "Sign In"


def test_ambiguous_candidates_never_reach_the_store(engine_factory):
    document, engine = engine_factory(
        """
        <html><body><form id="editor">
          <button id="save" class="btn">Save</button>
          <button class="btn">Cancel</button>
        </form></body></html>
        """
    )
    candidates = engine.generate_candidates("#save")
    assert ".btn" not in {candidate.selector for candidate in candidates}

    engine.find("#save")
    for candidate in engine.store.peek("#save").candidates:
        assert document.count(candidate.selector) == 1


def test_unresolvable_reference_raises_and_is_audited(engine_factory):
    document, engine = engine_factory(
        "<html><body><form><button type='button'>Login</button></form></body></html>",
        audit=True,
    )

    with pytest.raises(ResolutionExhaustedError) as excinfo:
        engine.find("//button[text()='Delete account']")

    assert excinfo.value.reference == "//button[text()='Delete account']"
    assert str(excinfo.value) == "[SELF-HEALING] Could not find locator: //button[text()='Delete account']"
    entries = engine.audit_logger.read()
    assert entries[-1]["success"] is False
    assert entries[-1]["tier"] == "similarity_fallback"


def test_successful_resolution_is_audited(engine_factory, login_markup):
    document, engine = engine_factory(login_markup, audit=True)
    engine.find("#loginBtn")

    entry = engine.audit_logger.read()[-1]
    assert entry["reference"] == "#loginBtn"
    assert entry["tier"] == "try_original"
    assert entry["selector"] == "#loginBtn"
    assert entry["success"] is True
    assert entry["candidate_count"] > 0


def test_similarity_fallback_picks_closest_text(engine_factory):
    document, engine = engine_factory(
        "<html><body><form><button type='submit'>Login</button></form></body></html>"
    )

    resolution = engine.resolve("//button[text()='Log in']")

    assert resolution.state is ResolutionState.SIMILARITY_FALLBACK
    assert document.text_of(resolution.element) == "Login"
    assert engine.store.peek("//button[text()='Log in']").healed_selector == resolution.selector


def test_unreachable_synonym_service_does_not_abort_resolution(engine_factory, login_markup):
    with hanging_up_server() as endpoint:
        document, engine = engine_factory(
            login_markup, synonyms=DatamuseSynonymService(endpoint, timeout_seconds=2)
        )
        resolution = engine.resolve("#loginBtn")

    assert resolution.state is ResolutionState.TRY_ORIGINAL
    assert resolution.element is document.first("#loginBtn")


def test_unreachable_locator_service_does_not_abort_resolution(engine_factory, login_markup):
    with hanging_up_server() as endpoint:
        client = OpenAILocatorClient("key", timeout=2)
        client.endpoint = endpoint
        document, engine = engine_factory(login_markup, strategy="ai", locator_client=client)
        resolution = engine.resolve("#loginBtn")

    assert resolution.state is ResolutionState.TRY_ORIGINAL
    assert resolution.candidates == []
