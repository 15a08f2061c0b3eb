from __future__ import annotations

import re

from selfheal.core.metadata import Candidate, ElementSnapshot

SYNONYM_SCORE = 35

_VOLATILE_CLASS = re.compile(r"(active|loading|disabled|selected|focus|error|open|show)", re.IGNORECASE)
_HAND_AUTHORED_ID = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
_IDENTITY_VALUE_PATTERNS = (
    re.compile(r"@id\s*=\s*['\"]([^'\"]*)['\"]"),
    re.compile(r"\[id\s*=\s*['\"]([^'\"]*)['\"]\]"),
    re.compile(r"#((?:\\.|[A-Za-z0-9_-])+)"),
)
_ATTRIBUTE_CONDITION = re.compile(r"\[[^\[\]]*=[^\[\]]*\]")
_POSITIONAL_MARKERS = ("nth-child", "sibling", "ancestor", "descendant")
_QUOTED_LITERAL = re.compile(r"(['\"]).*?\1")


def string_similarity(left: str, right: str) -> float:
    """Character-position similarity between two strings, in ``[0, 1]``."""

    if not left or not right:
        return 0.0
    left = left.lower()
    right = right.lower()
    if left == right:
        return 1.0
    matches = sum(1 for a, b in zip(left, right) if a == b)
    return matches / max(len(left), len(right))


def is_volatile_class(token: str) -> bool:
    return len(token) <= 12 and bool(_VOLATILE_CLASS.search(token))


def looks_hand_authored(identity: str) -> bool:
    return bool(identity) and len(identity) < 15 and bool(_HAND_AUTHORED_ID.match(identity))


def heuristic_score(candidate: Candidate, snapshot: ElementSnapshot | None = None) -> int:
    """Stability score (0-100) from a candidate's category and selector shape."""

    selector = candidate.selector
    category = candidate.type

    if "absolute" in category:
        return 10
    if "synonym" in category:
        return SYNONYM_SCORE
    if _is_identity_based(selector):
        # aria candidates are judged by the element's id, not the label text.
        identity = "" if "aria-label" in selector else _identity_value(selector)
        if not identity and snapshot is not None:
            identity = snapshot.attributes.get("id", "")
        return 95 if looks_hand_authored(identity) else 80
    if "normalize-space(text())" in selector:
        return 90
    if "contains(normalize-space" in selector:
        return 75
    if " and @" in selector or len(_ATTRIBUTE_CONDITION.findall(selector)) > 1:
        return 80
    if "starts-with(" in selector or " or @" in selector:
        return 65
    if any(marker in selector for marker in _POSITIONAL_MARKERS):
        return 50
    if "class" in category:
        return 70
    if _ATTRIBUTE_CONDITION.search(selector):
        return 70
    return 50


def _is_identity_based(selector: str) -> bool:
    return (
        "#" in _QUOTED_LITERAL.sub("", selector)
        or "aria-label" in selector
        or re.search(r"@id\s*=", selector) is not None
        or re.search(r"\[id\s*=", selector) is not None
    )


def _identity_value(selector: str) -> str:
    for pattern in _IDENTITY_VALUE_PATTERNS:
        match = pattern.search(selector)
        if match:
            return re.sub(r"\\(.)", r"\1", match.group(1))
    return ""
