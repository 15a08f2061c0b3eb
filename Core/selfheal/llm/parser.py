from __future__ import annotations

import json
import re

from pydantic import ValidationError

from selfheal.core.exceptions import SelectorValidationError
from selfheal.core.metadata import Candidate
from selfheal.utils.selectors import normalize_selector

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(response: str) -> str:
    return _CODE_FENCE.sub("", response).strip()


def parse_candidate_response(response: str) -> list[Candidate]:
    """Turns a service reply into candidates, skipping malformed items."""

    cleaned = strip_code_fences(response or "")
    if not cleaned:
        raise SelectorValidationError("Locator service returned an empty response")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SelectorValidationError(f"Locator service returned invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise SelectorValidationError("Locator service must return a JSON array")

    candidates: list[Candidate] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            candidate = Candidate.model_validate(item)
        except ValidationError:
            continue
        selector = normalize_selector(candidate.selector)
        if not selector or "\n" in selector:
            continue
        candidates.append(candidate.model_copy(update={"selector": selector}))
    return candidates
