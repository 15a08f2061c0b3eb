from __future__ import annotations

import re

_PREFIXES = ("xpath=", "css=")
_CSS_IDENTIFIER = re.compile(r"[A-Za-z0-9_-]")
_TEXT_LITERAL_PATTERNS = (
    re.compile(r"text\(\)\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"normalize-space\([^)]*\)\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"contains\(\s*(?:text\(\)|\.|normalize-space\([^)]*\))\s*,\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"^text\s*=\s*['\"]?([^'\"]+)['\"]?$"),
)
_XPATH_ID = re.compile(r"@id\s*=\s*['\"]([^'\"]+)['\"]")
_XPATH_CLASS = re.compile(r"(?:@class\s*=\s*|contains\(\s*@class\s*,\s*)['\"]([^'\"]+)['\"]")
_CSS_ID = re.compile(r"#((?:\\.|[A-Za-z0-9_-])+)")
_CSS_CLASS = re.compile(r"\.((?:\\.|[A-Za-z0-9_-])+)")
_XPATH_TAG = re.compile(r"^/*([A-Za-z][\w-]*|\*)")
_CSS_TAG = re.compile(r"^([A-Za-z][\w-]*)")


def normalize_selector(selector: str) -> str:
    stripped = selector.strip()
    for prefix in _PREFIXES:
        if stripped.startswith(prefix):
            return stripped[len(prefix):].strip()
    return stripped


def infer_selector_type(selector: str) -> str:
    stripped = normalize_selector(selector)
    if stripped.startswith("/") or stripped.startswith("("):
        return "xpath"
    return "css"


def css_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def css_identifier(value: str) -> str:
    escaped = "".join(char if _CSS_IDENTIFIER.match(char) else f"\\{char}" for char in value)
    if escaped[:1].isdigit():
        return f"\\3{escaped[0]} {escaped[1:]}"
    return escaped


def xpath_literal(value: str) -> str:
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


def split_last_step(selector: str) -> tuple[str, str]:
    """Splits a selector into its ancestor part and its final step.

    XPath steps are separated by ``/`` and CSS compounds by whitespace or
    ``>``; separators inside brackets, parentheses or quotes are ignored.
    """

    expression = normalize_selector(selector)
    is_xpath = infer_selector_type(expression) == "xpath"
    depth = 0
    quote = ""
    boundary = -1
    for index, char in enumerate(expression):
        if quote:
            if char == quote:
                quote = ""
            continue
        if char in "'\"":
            quote = char
        elif char in "[(":
            depth += 1
        elif char in "])":
            depth -= 1
        elif depth == 0:
            if is_xpath and char == "/":
                boundary = index
            elif not is_xpath and (char.isspace() or char in ">+~"):
                boundary = index
    if boundary < 0:
        return "", expression
    prefix = expression[: boundary + 1]
    if is_xpath:
        prefix = prefix.rstrip("/")
    return prefix.strip(), expression[boundary + 1 :].strip()


def extract_text_literal(selector: str) -> str:
    expression = normalize_selector(selector)
    for pattern in _TEXT_LITERAL_PATTERNS:
        match = pattern.search(expression)
        if match:
            return match.group(1).strip().lower()
    return ""


def extract_parent_id(selector: str) -> str:
    prefix, _ = split_last_step(selector)
    if not prefix:
        return ""
    pattern = _XPATH_ID if infer_selector_type(selector) == "xpath" else _CSS_ID
    matches = pattern.findall(prefix)
    return _unescape_css(matches[-1]) if matches else ""


def extract_parent_class(selector: str) -> str:
    prefix, _ = split_last_step(selector)
    if not prefix:
        return ""
    if infer_selector_type(selector) == "xpath":
        matches = _XPATH_CLASS.findall(prefix)
        return matches[-1].split()[0] if matches else ""
    matches = _CSS_CLASS.findall(prefix)
    return _unescape_css(matches[-1]) if matches else ""


def infer_tag(selector: str, default: str = "button") -> str:
    _, last_step = split_last_step(selector)
    pattern = _XPATH_TAG if infer_selector_type(selector) == "xpath" else _CSS_TAG
    match = pattern.match(last_step)
    if not match or match.group(1) == "*":
        return default
    return match.group(1).lower()


def _unescape_css(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)
