from __future__ import annotations

SYSTEM_PROMPT = "You are a test automation assistant. Always return a valid JSON array only, no explanations."

USER_PROMPT_TEMPLATE = """Given the DOM snippet below, generate robust alternative selectors
for the target element originally referenced by: {reference}.
If that exact element does not exist, generate selectors for the closest replacement element in the DOM.

Strategies to use:
- CSS by id, class, name, role, aria-label, data-*
- XPath relative and absolute
- XPath contains text / normalize-space
- Starts-with / ends-with for attributes
- Child-to-parent and sibling-based relationships
- Text-based selectors, including synonyms of the visible text

Prioritization rules:
1. data-testid, data-qa, data-cy, data-role
2. ARIA attributes (role, aria-label, aria-labelledby, aria-describedby)
3. Unique ids
4. Stable class combinations
5. Element + attribute (e.g. button[type='submit'])
6. Visible text (normalize-space text or contains text, plus synonyms)
7. Utility classes only as a last resort

Additional rules:
- If the element's text changed, generate selectors using the new text while keeping the element type and attributes.
- Include selectors for the closest matching element even when its tag differs from the original.
- Include at least one child-to-parent relationship selector and one sibling-based selector.
- Always include the absolute XPath from /html as the final fallback.

Return a JSON array only, each item shaped like:
{{"type": "css-id", "selector": "#loginBtn", "score": 95}}

DOM:
{dom_snippet}
"""


def build_user_prompt(dom_snippet: str, reference: str) -> str:
    return USER_PROMPT_TEMPLATE.format(reference=reference, dom_snippet=dom_snippet)
