from __future__ import annotations

import socket
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import pytest
from selenium.common.exceptions import WebDriverException

from selfheal.config.schema import BrowserSettings, HealingSettings, StoreSettings, SynonymSettings
from selfheal.core.actions import SelfHealingPage
from selfheal.core.factory import create_self_healing_page
from selfheal.llm.client import LocatorSuggestionClient
from selfheal.services.synonyms import SynonymService

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class FakeSynonymService(SynonymService):
    def __init__(self, mapping: dict[str, list[str]] | None = None) -> None:
        self.mapping = mapping or {}
        self.lookups: list[str] = []

    def lookup(self, word: str) -> list[str]:
        self.lookups.append(word)
        return list(self.mapping.get(word, []))


class FakeLocatorClient(LocatorSuggestionClient):
    provider_name = "fake"

    def __init__(self, reply: str = "[]", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def suggest_locators(self, dom_snippet: str, reference: str) -> str:
        self.calls.append((dom_snippet, reference))
        if self.error is not None:
            raise self.error
        return self.reply


@contextmanager
def managed_page(store_dir: Path, browser_name: str = "chrome") -> Iterator[SelfHealingPage]:
    settings = HealingSettings(
        log_level="debug",
        store=StoreSettings(directory=str(store_dir)),
        synonyms=SynonymSettings(enabled=False),
        browser=BrowserSettings(name=browser_name, headless=True),
    )
    try:
        page = create_self_healing_page(settings=settings)
    except WebDriverException as exc:
        pytest.skip(f"WebDriver could not start for {browser_name}: {exc}")
    with page:
        yield page


def open_fixture(page: SelfHealingPage, name: str) -> None:
    page.driver.get((FIXTURES / name).as_uri())


def rename_login_button(page: SelfHealingPage) -> None:
    page.driver.execute_script(
        """
        const button = document.querySelector('#loginBtn');
        if (button) {
          button.removeAttribute('id');
        }
        """
    )


def replace_login_button_with_div(page: SelfHealingPage) -> None:
    page.driver.execute_script(
        """
        const button = document.querySelector('#loginBtn');
        if (!button) return;
        const replacement = document.createElement('div');
        replacement.setAttribute('data-qa', 'loginBtn');
        replacement.textContent = 'Sign In';
        button.replaceWith(replacement);
        """
    )


@contextmanager
def hanging_up_server() -> Iterator[str]:
    """Local HTTP endpoint that accepts connections and closes them without replying."""

    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen()
    listener.settimeout(0.2)
    stopped = threading.Event()

    def serve() -> None:
        while not stopped.is_set():
            try:
                connection, _ = listener.accept()
            except OSError:
                continue
            connection.close()

    worker = threading.Thread(target=serve, daemon=True)
    worker.start()
    host, port = listener.getsockname()
    try:
        yield f"http://{host}:{port}/words"
    finally:
        stopped.set()
        worker.join(timeout=2)
        listener.close()
