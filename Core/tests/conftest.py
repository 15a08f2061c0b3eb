from __future__ import annotations

import pytest

from selfheal.config.schema import HealingSettings, StoreSettings
from selfheal.core.factory import build_engine
from selfheal.core.static_document import HtmlDocument
from selfheal.core.validation import UniquenessValidator
from selfheal.llm.client import LocatorSuggestionClient
from selfheal.logging.logger import build_logger
from selfheal.services.synonyms import SynonymService
from selfheal.store.candidate_store import CandidateStore
from tests.helpers import FIXTURES, FakeSynonymService


@pytest.fixture()
def login_markup() -> str:
    return (FIXTURES / "login.html").read_text(encoding="utf-8")


@pytest.fixture()
def login_document(login_markup) -> HtmlDocument:
    return HtmlDocument(login_markup)


@pytest.fixture()
def healing_logger():
    return build_logger("debug")


@pytest.fixture()
def validator(login_document, healing_logger) -> UniquenessValidator:
    return UniquenessValidator(login_document, healing_logger)


@pytest.fixture()
def store(validator, tmp_path, healing_logger) -> CandidateStore:
    return CandidateStore(validator, directory=tmp_path, logger=healing_logger)


@pytest.fixture()
def engine_factory(tmp_path, healing_logger):
    """Builds an engine over static markup with its store under ``tmp_path``."""

    def build(
        markup: str,
        *,
        strategy: str = "heuristic",
        synonyms: SynonymService | None = None,
        locator_client: LocatorSuggestionClient | None = None,
        audit: bool = False,
    ):
        document = HtmlDocument(markup)
        settings = HealingSettings(
            strategy=strategy,
            log_level="debug",
            candidate_visibility_timeout_seconds=0,
            audit_log_path=str(tmp_path / "audit.jsonl") if audit else None,
            store=StoreSettings(directory=str(tmp_path)),
        )
        engine = build_engine(
            document,
            settings,
            synonym_service=synonyms or FakeSynonymService(),
            locator_client=locator_client,
            logger=healing_logger,
        )
        return document, engine

    return build
