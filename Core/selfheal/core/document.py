from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from selenium.common.exceptions import (
    InvalidSelectorException,
    JavascriptException,
    StaleElementReferenceException,
    WebDriverException,
)
from selenium.webdriver.common.by import By

from selfheal.core.exceptions import InvalidExpressionError
from selfheal.core.metadata import ElementSnapshot, SiblingPosition
from selfheal.utils.dom_extract import (
    ABSOLUTE_XPATH_SCRIPT,
    ATTRIBUTES_SCRIPT,
    PARENT_MARKUP_SCRIPT,
    SIBLING_POSITION_SCRIPT,
    SNAPSHOT_SCRIPT,
    VISIBILITY_SCRIPT,
    collapse_whitespace,
    sibling_position_from_payload,
    snapshot_from_payload,
)
from selfheal.utils.selectors import infer_selector_type, normalize_selector
from selfheal.utils.wait import poll_until


class DocumentQueryEngine(ABC):
    """Executes selectors against a document and describes matched elements."""

    @abstractmethod
    def find_all(self, selector: str) -> list[Any]:
        """Returns every match; raises InvalidExpressionError for malformed selectors."""

    @abstractmethod
    def snapshot(self, element) -> ElementSnapshot:
        raise NotImplementedError

    @abstractmethod
    def sibling_position(self, element) -> SiblingPosition | None:
        raise NotImplementedError

    @abstractmethod
    def absolute_path(self, element) -> str:
        raise NotImplementedError

    @abstractmethod
    def parent_markup(self, element) -> str:
        raise NotImplementedError

    @abstractmethod
    def page_source(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def is_visible(self, element) -> bool:
        raise NotImplementedError

    def count(self, selector: str) -> int:
        return len(self.find_all(selector))

    def first(self, selector: str):
        try:
            matches = self.find_all(selector)
        except InvalidExpressionError:
            return None
        return matches[0] if matches else None

    def elements_by_tag(self, tag: str) -> list[Any]:
        try:
            return self.find_all(tag or "*")
        except InvalidExpressionError:
            return []

    def text_of(self, element) -> str:
        return self.snapshot(element).text

    def attributes_of(self, element) -> dict[str, str]:
        return dict(self.snapshot(element).attributes)

    def wait_visible(self, selector: str, timeout: float | None):
        def probe():
            element = self.first(selector)
            if element is not None and self.is_visible(element):
                return element
            return None

        return poll_until(probe, timeout)


class SeleniumDocument(DocumentQueryEngine):
    """Document engine backed by a live Selenium WebDriver session."""

    def __init__(self, driver) -> None:
        self.driver = driver

    def find_all(self, selector: str) -> list[Any]:
        expression = normalize_selector(selector)
        by = By.XPATH if infer_selector_type(expression) == "xpath" else By.CSS_SELECTOR
        try:
            return list(self.driver.find_elements(by, expression))
        except InvalidSelectorException as exc:
            raise InvalidExpressionError(f"Invalid selector '{selector}': {exc.msg}") from exc
        except JavascriptException as exc:
            raise InvalidExpressionError(f"Selector '{selector}' could not be evaluated: {exc.msg}") from exc

    def snapshot(self, element) -> ElementSnapshot:
        payload = self.driver.execute_script(SNAPSHOT_SCRIPT, element) or {}
        return snapshot_from_payload(payload)

    def sibling_position(self, element) -> SiblingPosition | None:
        return sibling_position_from_payload(self.driver.execute_script(SIBLING_POSITION_SCRIPT, element))

    def absolute_path(self, element) -> str:
        return self.driver.execute_script(ABSOLUTE_XPATH_SCRIPT, element) or ""

    def parent_markup(self, element) -> str:
        return self.driver.execute_script(PARENT_MARKUP_SCRIPT, element) or ""

    def page_source(self) -> str:
        return self.driver.page_source

    def text_of(self, element) -> str:
        try:
            return collapse_whitespace(element.get_attribute("textContent"))
        except StaleElementReferenceException:
            return ""

    def attributes_of(self, element) -> dict[str, str]:
        try:
            payload = self.driver.execute_script(ATTRIBUTES_SCRIPT, element) or {}
        except StaleElementReferenceException:
            return {}
        return {str(key): str(value) for key, value in payload.items()}

    def is_visible(self, element) -> bool:
        try:
            if element.is_displayed():
                return True
            return bool(self.driver.execute_script(VISIBILITY_SCRIPT, element))
        except (StaleElementReferenceException, WebDriverException):
            return False
