from __future__ import annotations

from typing import Any, Callable, TypeVar

from selenium.common.exceptions import ElementNotInteractableException, StaleElementReferenceException
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.keys import Keys

from selfheal.core.engine import ResolutionEngine
from selfheal.core.exceptions import HealingError

T = TypeVar("T")


class HealingLocator:
    """Explicit action set over a reference; every action resolves first, then invokes."""

    def __init__(self, engine: ResolutionEngine, reference: str) -> None:
        self.engine = engine
        self.reference = reference

    def element(self):
        return self.engine.find(self.reference)

    def click(self) -> None:
        self._invoke(lambda element: element.click())

    def fill(self, value: str) -> None:
        def fill_in(element) -> None:
            element.clear()
            element.send_keys(value)

        self._invoke(fill_in)

    def type(self, value: str) -> None:
        self._invoke(lambda element: element.send_keys(value))

    def clear(self) -> None:
        self._invoke(lambda element: element.clear())

    def press(self, key: str) -> None:
        resolved_key = getattr(Keys, key.upper(), key)
        self._invoke(lambda element: element.send_keys(resolved_key))

    def hover(self) -> None:
        driver = getattr(self.engine.document, "driver", None)
        if driver is None:
            raise HealingError("hover requires a live browser session")
        self._invoke(lambda element: ActionChains(driver).move_to_element(element).perform())

    def text(self) -> str:
        return self._invoke(lambda element: element.text)

    def get_attribute(self, name: str) -> Any:
        return self._invoke(lambda element: element.get_attribute(name))

    def is_displayed(self) -> bool:
        return self._invoke(lambda element: element.is_displayed())

    def _invoke(self, action: Callable[[Any], T]) -> T:
        element = self.engine.find(self.reference)
        try:
            return action(element)
        except (ElementNotInteractableException, StaleElementReferenceException):
            return action(self.engine.find(self.reference))


class SelfHealingPage:
    """Page facade handing out healing locators bound to one engine."""

    def __init__(self, engine: ResolutionEngine, owns_driver: bool = False) -> None:
        self.engine = engine
        self.owns_driver = owns_driver

    @property
    def driver(self):
        return getattr(self.engine.document, "driver", None)

    def locator(self, reference: str) -> HealingLocator:
        return HealingLocator(self.engine, reference)

    def find(self, reference: str):
        return self.engine.find(reference)

    def close(self) -> None:
        """Quits the driver when this page launched it."""

        if self.owns_driver and self.driver is not None:
            self.driver.quit()
            self.owns_driver = False

    def __enter__(self) -> SelfHealingPage:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
