from __future__ import annotations

from typing import Any

from selfheal.core.metadata import ElementSnapshot, ParentSignature, SiblingPosition

SNAPSHOT_SCRIPT = r"""
const el = arguments[0];
if (!el) return null;
const attributes = {};
for (const name of el.getAttributeNames()) {
  attributes[name] = el.getAttribute(name) || "";
}
const parent = el.parentElement;
return {
  tag: el.tagName.toLowerCase(),
  text: (el.textContent || "").replace(/\s+/g, " ").trim(),
  attributes: attributes,
  aria_label: el.getAttribute("aria-label") || "",
  role: el.getAttribute("role") || "",
  parent: parent
    ? {
        tag: parent.tagName.toLowerCase(),
        id: parent.getAttribute("id") || null,
        class: parent.getAttribute("class") || null,
      }
    : null,
};
"""

SIBLING_POSITION_SCRIPT = r"""
const el = arguments[0];
if (!el || !el.parentElement) return null;
const siblings = Array.from(el.parentElement.children);
const sameTag = siblings.filter((node) => node.tagName === el.tagName);
return {
  parent_tag: el.parentElement.tagName.toLowerCase(),
  child_index: siblings.indexOf(el) + 1,
  type_index: sameTag.indexOf(el) + 1,
};
"""

ABSOLUTE_XPATH_SCRIPT = r"""
const pathOf = (node) => {
  if (!node || node.nodeType !== Node.ELEMENT_NODE) return "";
  if (node === document.documentElement) return "/html";
  const siblings = Array.from(node.parentNode ? node.parentNode.children : []).filter(
    (item) => item.nodeName === node.nodeName
  );
  const index = siblings.indexOf(node) + 1;
  return `${pathOf(node.parentElement)}/${node.tagName.toLowerCase()}[${index}]`;
};
return pathOf(arguments[0]);
"""

PARENT_MARKUP_SCRIPT = r"""
const el = arguments[0];
if (!el) return "";
return el.parentElement ? el.parentElement.outerHTML : el.outerHTML;
"""

ATTRIBUTES_SCRIPT = r"""
const el = arguments[0];
if (!el) return {};
const attributes = {};
for (const name of el.getAttributeNames()) {
  attributes[name] = el.getAttribute(name) || "";
}
return attributes;
"""

VISIBILITY_SCRIPT = r"""
const el = arguments[0];
if (!el) return false;
const style = window.getComputedStyle(el);
if (style.display === "none" || style.visibility === "hidden") return false;
const rect = el.getBoundingClientRect();
return rect.width > 0 && rect.height > 0;
"""


def collapse_whitespace(value: str | None) -> str:
    return " ".join((value or "").split())


def snapshot_from_payload(payload: dict[str, Any]) -> ElementSnapshot:
    parent_payload = payload.get("parent")
    parent = None
    if parent_payload:
        parent = ParentSignature(
            tag=parent_payload.get("tag", ""),
            id=parent_payload.get("id") or None,
            class_name=parent_payload.get("class") or None,
        )
    attributes = {str(key): str(value) for key, value in (payload.get("attributes") or {}).items()}
    return ElementSnapshot(
        tag=payload.get("tag", ""),
        text=collapse_whitespace(payload.get("text")),
        attributes=attributes,
        aria_label=payload.get("aria_label") or attributes.get("aria-label", ""),
        role=payload.get("role") or attributes.get("role", ""),
        parent=parent,
    )


def sibling_position_from_payload(payload: dict[str, Any] | None) -> SiblingPosition | None:
    if not payload:
        return None
    return SiblingPosition(
        parent_tag=payload.get("parent_tag", ""),
        child_index=int(payload.get("child_index", 0)),
        type_index=int(payload.get("type_index", 0)),
    )


def build_dom_snippet(markup: str, max_chars: int = 12000) -> str:
    """Trims document markup to what a suggestion service is given."""

    snippet = markup.strip()
    if len(snippet) <= max_chars:
        return snippet
    return snippet[:max_chars]
