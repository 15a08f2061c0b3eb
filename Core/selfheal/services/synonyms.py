from __future__ import annotations

import http.client
import json
import logging
from abc import ABC, abstractmethod
from urllib import error, parse, request

from selfheal.core.exceptions import ServiceUnavailableError


class SynonymService(ABC):
    """Looks up words with a similar meaning; never raises."""

    @abstractmethod
    def lookup(self, word: str) -> list[str]:
        raise NotImplementedError


class NullSynonymService(SynonymService):
    def lookup(self, word: str) -> list[str]:
        return []


class DatamuseSynonymService(SynonymService):
    endpoint = "https://api.datamuse.com/words"

    def __init__(
        self,
        endpoint: str | None = None,
        timeout_seconds: float = 5,
        logger: logging.Logger | None = None,
    ) -> None:
        self.endpoint = endpoint or self.endpoint
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    def lookup(self, word: str) -> list[str]:
        if not word.strip():
            return []
        try:
            payload = self._get_json({"ml": word})
        except ServiceUnavailableError as exc:
            self.logger.warning("Synonym lookup failed for '%s': %s", word, exc)
            return []
        if not isinstance(payload, list):
            self.logger.warning("Synonym lookup for '%s' returned an unexpected payload", word)
            return []
        return [item["word"] for item in payload if isinstance(item, dict) and isinstance(item.get("word"), str)]

    def _get_json(self, query: dict[str, str]):
        url = f"{self.endpoint}?{parse.urlencode(query)}"
        req = request.Request(url, headers={"Accept": "application/json"}, method="GET")
        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raise ServiceUnavailableError(f"synonym request failed with status {exc.code}") from exc
        except error.URLError as exc:
            raise ServiceUnavailableError(f"synonym request could not be completed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise ServiceUnavailableError("synonym request timed out") from exc
        except (http.client.HTTPException, OSError) as exc:
            raise ServiceUnavailableError(f"synonym connection failed: {exc!r}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ServiceUnavailableError("synonym service returned invalid JSON") from exc
