"""Shared factories for browser_control tests."""

from browser_control import Page
from browser_control.utils.logger import BrowserControlLogger
from tests.fakes import EMPTY_PAGE, FakeBrowser


class RecordingLogger:
    """Stands in for a structlog bound logger and records every call."""

    def __init__(self):
        self.records = []
        self.bindings = {}

    def bind(self, **bindings):
        child = RecordingLogger()
        child.records = self.records
        child.bindings = {**self.bindings, **bindings}
        return child

    def _record(self, method_name, message, **kwargs):
        self.records.append((method_name, message, {**self.bindings, **kwargs}))

    def debug(self, message, **kwargs):
        self._record("debug", message, **kwargs)

    def info(self, message, **kwargs):
        self._record("info", message, **kwargs)

    def warning(self, message, **kwargs):
        self._record("warning", message, **kwargs)

    def error(self, message, **kwargs):
        self._record("error", message, **kwargs)


def make_logger(verbose: int = 3):
    """Build a BrowserControlLogger over a RecordingLogger."""
    recorder = RecordingLogger()
    return BrowserControlLogger(recorder, verbose), recorder


async def make_page(browser=None, **options):
    """Create a Page attached to a FakeBrowser; returns (page, browser)."""
    browser = browser or FakeBrowser()
    logger, _ = make_logger()
    page = await Page.create(browser, options or None, logger=logger)
    return page, browser


async def make_loaded_page(url: str = EMPTY_PAGE, **options):
    """Create a Page and navigate it to ``url``."""
    page, browser = await make_page(**options)
    await page.goto(url)
    return page, browser
