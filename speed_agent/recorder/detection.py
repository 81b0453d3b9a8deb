"""Interactive element detection over rendered page HTML."""

from typing import List

from bs4 import BeautifulSoup, Tag

from speed_agent.core.schemas import InteractiveElement
from speed_agent.utils.constants import (
    ELEMENT_FAMILIES,
    JQUERY_DEPENDENT_CLASSES,
    MAX_ELEMENTS_PER_PAGE,
    MAX_SELECTOR_CLASSES,
    MAX_SELECTOR_MATCHES,
    SAFE_IDENT_PATTERN,
    TRANSIENT_CLASS_PATTERN,
)


def build_selector(el: Tag, soup: BeautifulSoup) -> str:
    """
    Stable CSS selector for an element.

    Preference: #id, then tag.c1.c2.c3 (state classes removed) when it
    matches at most three elements, then the bare tag name.
    """
    el_id = el.get("id")
    if el_id and SAFE_IDENT_PATTERN.match(el_id):
        return f"#{el_id}"

    classes = [
        c for c in el.get("class", [])
        if not TRANSIENT_CLASS_PATTERN.match(c) and SAFE_IDENT_PATTERN.match(c)
    ][:MAX_SELECTOR_CLASSES]
    if classes:
        selector = f"{el.name}.{'.'.join(classes)}"
        if len(soup.select(selector)) <= MAX_SELECTOR_MATCHES:
            return selector

    return el.name


def _describe(element_type: str, el: Tag, default: str) -> str:
    if element_type == "dropdown":
        return f"{default}: {el.get_text(strip=True)[:40]}"
    if element_type == "form":
        fields = el.select('input:not([type="hidden"]), textarea, select')
        return f"Form with {len(fields)} fields"
    return default


def detect_interactive_elements(html: str, page_path: str) -> List[InteractiveElement]:
    soup = BeautifulSoup(html or "", "html.parser")
    elements: List[InteractiveElement] = []

    for element_type, selector, trigger, expected, description in ELEMENT_FAMILIES:
        for el in soup.select(selector):
            classes = el.get("class", [])
            elements.append(InteractiveElement(
                page=page_path,
                type=element_type,
                selector=build_selector(el, soup),
                description=_describe(element_type, el, description),
                trigger_action=trigger,
                expected_behavior=expected,
                depends_on_jquery=element_type == "slider" and any(c in JQUERY_DEPENDENT_CLASSES for c in classes),
            ))

    return elements[:MAX_ELEMENTS_PER_PAGE]
