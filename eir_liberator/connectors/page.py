"""
Page access used by connectors and the extractor.

All reading happens on BeautifulSoup snapshots of the page source; only
clicks and visibility checks go through the live browser.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from bs4 import BeautifulSoup
from selenium import webdriver
from selenium.common.exceptions import (
    ElementClickInterceptedException,
    StaleElementReferenceException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from ..utils.logger import get_logger

log = get_logger("page")

HTML_PARSER = "lxml"


class Page(ABC):
    @property
    @abstractmethod
    def url(self) -> str: ...

    @abstractmethod
    def html(self) -> str: ...

    @abstractmethod
    def count(self, selector: str) -> int: ...

    @abstractmethod
    def is_interactable(self, selector: str, index: int = 0) -> bool:
        """Element exists, is rendered and is not disabled."""

    @abstractmethod
    def click(self, selector: str, index: int = 0) -> None: ...

    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html(), HTML_PARSER)


class SeleniumPage(Page):
    def __init__(self, driver: WebDriver):
        self.driver = driver

    @property
    def url(self) -> str:
        return self.driver.current_url

    def html(self) -> str:
        return self.driver.page_source

    def count(self, selector: str) -> int:
        return len(self.driver.find_elements(By.CSS_SELECTOR, selector))

    def is_interactable(self, selector: str, index: int = 0) -> bool:
        elements = self.driver.find_elements(By.CSS_SELECTOR, selector)
        if index >= len(elements):
            return False
        el = elements[index]
        return el.is_displayed() and el.is_enabled()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=0.2, max=2),
        retry=retry_if_exception_type((StaleElementReferenceException, ElementClickInterceptedException)),
        reraise=True,
    )
    def click(self, selector: str, index: int = 0) -> None:
        elements = self.driver.find_elements(By.CSS_SELECTOR, selector)
        if index >= len(elements):
            raise IndexError(f"no element #{index} for {selector!r}")
        el = elements[index]
        self.driver.execute_script("arguments[0].scrollIntoView({block: 'center'});", el)
        el.click()


def make_chrome_driver(headless: bool = False) -> WebDriver:
    """Chrome WebDriver; headful by default so the user can log in."""
    chrome_options = Options()
    if headless:
        chrome_options.add_argument("--headless")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--window-size=1920,1080")
    driver = webdriver.Chrome(options=chrome_options)
    log.info("Selenium WebDriver initialized")
    return driver
