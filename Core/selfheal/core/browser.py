from __future__ import annotations

from selenium import webdriver
from selenium.webdriver import ChromeOptions, FirefoxOptions

from selfheal.config.schema import BrowserSettings


def browser_options(settings: BrowserSettings):
    """Options for the configured browser; the driver binary comes from Selenium Manager."""

    if settings.name == "firefox":
        options = FirefoxOptions()
        if settings.headless:
            options.add_argument("-headless")
        options.add_argument(f"--width={settings.window_width}")
        options.add_argument(f"--height={settings.window_height}")
        return options

    options = ChromeOptions()
    if settings.headless:
        options.add_argument("--headless=new")
    options.add_argument(f"--window-size={settings.window_width},{settings.window_height}")
    return options


def launch_driver(settings: BrowserSettings | None = None):
    settings = settings or BrowserSettings()
    options = browser_options(settings)
    if settings.name == "firefox":
        driver = webdriver.Firefox(options=options)
    else:
        driver = webdriver.Chrome(options=options)
    driver.set_page_load_timeout(settings.page_load_timeout_seconds)
    # Waiting is owned by the resolution engine's visibility probes.
    driver.implicitly_wait(0)
    return driver
