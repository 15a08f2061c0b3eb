from __future__ import annotations

import io
import json
import logging
from urllib import error

from selfheal.services import synonyms as synonyms_module
from selfheal.services.synonyms import DatamuseSynonymService, NullSynonymService
from tests.helpers import hanging_up_server


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False


def test_datamuse_lookup_returns_words_in_order(monkeypatch):
    requested = []

    def fake_urlopen(req, timeout):
        requested.append((req.full_url, timeout))
        return FakeResponse(json.dumps([{"word": "sign in"}, {"score": 3}, {"word": "log in"}]).encode("utf-8"))

    monkeypatch.setattr(synonyms_module.request, "urlopen", fake_urlopen)
    service = DatamuseSynonymService("https://words.example/api", timeout_seconds=2)

    assert service.lookup("Login") == ["sign in", "log in"]
    assert requested == [("https://words.example/api?ml=Login", 2)]


def test_datamuse_failures_yield_no_synonyms(monkeypatch, caplog, healing_logger):
    caplog.set_level(logging.WARNING)

    def unreachable(req, timeout):
        raise error.URLError("offline")

    monkeypatch.setattr(synonyms_module.request, "urlopen", unreachable)
    assert DatamuseSynonymService(logger=healing_logger).lookup("Login") == []
    assert "Synonym lookup failed for 'Login'" in caplog.text

    monkeypatch.setattr(synonyms_module.request, "urlopen", lambda req, timeout: FakeResponse(b"<html>"))
    assert DatamuseSynonymService().lookup("Login") == []

    monkeypatch.setattr(synonyms_module.request, "urlopen", lambda req, timeout: FakeResponse(b'{"word": "x"}'))
    assert DatamuseSynonymService().lookup("Login") == []


def test_blank_words_and_null_service():
    assert DatamuseSynonymService().lookup("   ") == []
    assert NullSynonymService().lookup("Login") == []


def test_dropped_connections_yield_no_synonyms(caplog, healing_logger):
    caplog.set_level(logging.WARNING)
    with hanging_up_server() as endpoint:
        service = DatamuseSynonymService(endpoint, timeout_seconds=2, logger=healing_logger)
        assert service.lookup("Login") == []
    assert "Synonym lookup failed for 'Login'" in caplog.text
