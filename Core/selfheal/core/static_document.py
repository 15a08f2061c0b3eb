from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from cssselect import SelectorError
from lxml import etree
from lxml import html as lxml_html
from lxml.cssselect import CSSSelector

from selfheal.core.document import DocumentQueryEngine
from selfheal.core.exceptions import InvalidExpressionError
from selfheal.core.metadata import ElementSnapshot, ParentSignature, SiblingPosition
from selfheal.utils.dom_extract import collapse_whitespace
from selfheal.utils.selectors import infer_selector_type, normalize_selector

_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)


class HtmlDocument(DocumentQueryEngine):
    """Document engine over static markup, for offline diagnostics and tests."""

    def __init__(self, markup: str) -> None:
        self._root = lxml_html.document_fromstring(markup)

    @classmethod
    def from_file(cls, path: str | Path) -> HtmlDocument:
        return cls(Path(path).read_text(encoding="utf-8"))

    def replace(self, markup: str) -> None:
        self._root = lxml_html.document_fromstring(markup)

    def find_all(self, selector: str) -> list[Any]:
        expression = normalize_selector(selector)
        if infer_selector_type(expression) == "xpath":
            try:
                result = self._root.xpath(expression)
            except etree.XPathError as exc:
                raise InvalidExpressionError(f"Invalid selector '{selector}': {exc}") from exc
            if not isinstance(result, list):
                raise InvalidExpressionError(f"Selector '{selector}' does not address elements")
            return [item for item in result if _is_element(item)]
        try:
            matcher = CSSSelector(expression, translator="html")
        except SelectorError as exc:
            raise InvalidExpressionError(f"Invalid selector '{selector}': {exc}") from exc
        return [item for item in matcher(self._root) if _is_element(item)]

    def snapshot(self, element) -> ElementSnapshot:
        attributes = {str(key): str(value) for key, value in element.attrib.items()}
        parent = element.getparent()
        return ElementSnapshot(
            tag=element.tag.lower(),
            text=collapse_whitespace(element.text_content()),
            attributes=attributes,
            aria_label=attributes.get("aria-label", ""),
            role=attributes.get("role", ""),
            parent=(
                ParentSignature(
                    tag=parent.tag.lower(),
                    id=parent.get("id") or None,
                    class_name=parent.get("class") or None,
                )
                if parent is not None
                else None
            ),
        )

    def sibling_position(self, element) -> SiblingPosition | None:
        parent = element.getparent()
        if parent is None:
            return None
        siblings = [child for child in parent if _is_element(child)]
        same_tag = [child for child in siblings if child.tag == element.tag]
        return SiblingPosition(
            parent_tag=parent.tag.lower(),
            child_index=siblings.index(element) + 1,
            type_index=same_tag.index(element) + 1,
        )

    def absolute_path(self, element) -> str:
        steps: list[str] = []
        node = element
        while node is not None and node is not self._root:
            parent = node.getparent()
            if parent is None:
                break
            same_tag = [child for child in parent if _is_element(child) and child.tag == node.tag]
            steps.append(f"{node.tag.lower()}[{same_tag.index(node) + 1}]")
            node = parent
        return "/html" + "".join(f"/{step}" for step in reversed(steps))

    def parent_markup(self, element) -> str:
        target = element.getparent() if element.getparent() is not None else element
        return lxml_html.tostring(target, encoding="unicode")

    def page_source(self) -> str:
        return lxml_html.tostring(self._root, encoding="unicode")

    def text_of(self, element) -> str:
        return collapse_whitespace(element.text_content())

    def attributes_of(self, element) -> dict[str, str]:
        return {str(key): str(value) for key, value in element.attrib.items()}

    def is_visible(self, element) -> bool:
        node = element
        while node is not None:
            if node.get("hidden") is not None:
                return False
            if _HIDDEN_STYLE.search(node.get("style", "")):
                return False
            if node.tag == "input" and node.get("type", "").lower() == "hidden":
                return False
            node = node.getparent()
        return True


def _is_element(item) -> bool:
    return isinstance(item, etree._Element) and isinstance(item.tag, str)
