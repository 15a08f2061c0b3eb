from __future__ import annotations

import logging

from selfheal.config.schema import HealingSettings
from selfheal.core.actions import SelfHealingPage
from selfheal.core.ai_generator import GenerativeCandidateGenerator
from selfheal.core.browser import launch_driver
from selfheal.core.document import DocumentQueryEngine, SeleniumDocument
from selfheal.core.engine import ResolutionEngine
from selfheal.core.generator import CandidateGenerator, HeuristicCandidateGenerator
from selfheal.core.validation import UniquenessValidator
from selfheal.llm.client import LazyLocatorClient, LocatorSuggestionClient
from selfheal.logging.audit import ResolutionAuditLogger
from selfheal.logging.logger import build_logger
from selfheal.services.synonyms import DatamuseSynonymService, NullSynonymService, SynonymService
from selfheal.store.candidate_store import CandidateStore


def build_engine(
    document: DocumentQueryEngine,
    settings: HealingSettings | None = None,
    *,
    synonym_service: SynonymService | None = None,
    locator_client: LocatorSuggestionClient | None = None,
    logger: logging.Logger | None = None,
) -> ResolutionEngine:
    """Wires validator, generator, store and audit log around a document engine.

    ``synonym_service`` and ``locator_client`` override the services the
    settings would otherwise construct.
    """

    settings = settings or HealingSettings()
    logger = logger or build_logger(settings.log_level)
    validator = UniquenessValidator(document, logger)
    generator = _build_generator(document, validator, settings, synonym_service, locator_client, logger)
    store = CandidateStore(
        validator,
        file_name=settings.store.file_name,
        directory=settings.store.directory,
        retention_days=settings.store.retention_days,
        logger=logger,
    )
    audit_logger = ResolutionAuditLogger(settings.audit_log_path) if settings.audit_log_path else None
    return ResolutionEngine(
        document,
        generator,
        store,
        validator,
        logger=logger,
        audit_logger=audit_logger,
        candidate_visibility_timeout=settings.candidate_visibility_timeout_seconds,
        original_visibility_timeout=settings.original_visibility_timeout_seconds,
    )


def create_self_healing_page(driver=None, settings: HealingSettings | None = None, **overrides) -> SelfHealingPage:
    """Wraps ``driver`` in a healing page.

    Without a driver one is launched from ``settings.browser``; the page then
    owns it and quits it on ``close``.
    """

    settings = settings or HealingSettings()
    owns_driver = driver is None
    if owns_driver:
        driver = launch_driver(settings.browser)
    return SelfHealingPage(build_engine(SeleniumDocument(driver), settings, **overrides), owns_driver=owns_driver)


def _build_generator(
    document: DocumentQueryEngine,
    validator: UniquenessValidator,
    settings: HealingSettings,
    synonym_service: SynonymService | None,
    locator_client: LocatorSuggestionClient | None,
    logger: logging.Logger,
) -> CandidateGenerator:
    if settings.strategy == "ai":
        client = locator_client or LazyLocatorClient(
            settings.generative.provider,
            model=settings.generative.model,
            timeout=settings.generative.timeout_seconds,
        )
        logger.info("Using generative candidate strategy (%s)", settings.generative.provider)
        return GenerativeCandidateGenerator(document, validator, client, logger=logger)

    if synonym_service is None:
        if settings.synonyms.enabled:
            synonym_service = DatamuseSynonymService(
                settings.synonyms.endpoint,
                timeout_seconds=settings.synonyms.timeout_seconds,
                logger=logger,
            )
        else:
            synonym_service = NullSynonymService()
    return HeuristicCandidateGenerator(
        document,
        validator,
        synonyms=synonym_service,
        logger=logger,
        synonym_limit=settings.synonyms.limit,
    )
