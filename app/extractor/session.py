"""Automation session capability and its browser-driver adapters.

The extractor needs navigate, evaluate and evaluate_async, plus current_url
to spot sign-in redirects. Every driver failure is translated here, once, into either
``TransportTimeout`` or ``TransportRejected`` so that the retry logic upstream
branches on a type instead of on message text.
"""
from __future__ import annotations

import json
from typing import Any, Optional, Protocol, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PWTimeout
from playwright.sync_api import sync_playwright
from selenium import webdriver
from selenium.common.exceptions import (
    JavascriptException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.remote.webdriver import WebDriver

from . import config
from .errors import RejectReason, TransportError, TransportRejected, TransportTimeout
from .logging_utils import _extractor_event

_NETWORK_MARKERS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "dnsNotFound",
    "nssFailure",
)

_PROXY_MARKERS: tuple[str, ...] = (
    "ERR_PROXY_CONNECTION_FAILED",
    "ERR_SOCKS_CONNECTION_FAILED",
    "ERR_TUNNEL_CONNECTION_FAILED",
    "proxyConnectFailure",
)


class AutomationSession(Protocol):
    """What the probe, cache and fetch layers require from a browser."""

    def navigate(self, url: str) -> None: ...

    def evaluate(self, script: str, args: Sequence[Any] = ()) -> str: ...

    def evaluate_async(self, script: str, args: Sequence[Any] = ()) -> str: ...

    def current_url(self) -> str: ...


def _reject_reason(message: str) -> RejectReason:
    for marker in _PROXY_MARKERS:
        if marker in message:
            return RejectReason.PROXY
    for marker in _NETWORK_MARKERS:
        if marker in message:
            return RejectReason.NETWORK
    return RejectReason.OTHER


def _as_text(result: Any) -> str:
    """Scripts hand back strings; anything else is JSON-encoded."""

    if result is None:
        return ""
    if isinstance(result, str):
        return result
    return json.dumps(result, separators=(",", ":"), ensure_ascii=False)


def _record(error: TransportError) -> TransportError:
    _extractor_event(
        "transport",
        command=error.command,
        error_code=error.error_code,
        reason=getattr(error, "reason", None),
        detail=error.detail[:200],
    )
    return error


def classify_webdriver_error(exc: WebDriverException, command: str) -> TransportError:
    """Translate a Selenium exception into the transport taxonomy."""

    message = getattr(exc, "msg", None) or str(exc)
    if isinstance(exc, TimeoutException):
        return _record(TransportTimeout(f"{command} timed out", command=command, detail=message))
    if "timed out" in message.lower() or message.lower().startswith("timeout"):
        return _record(TransportTimeout(f"{command} timed out", command=command, detail=message))

    reason = _reject_reason(message)
    if reason is RejectReason.OTHER and isinstance(exc, JavascriptException):
        reason = RejectReason.SCRIPT
    return _record(
        TransportRejected(f"{command} rejected", reason=reason, command=command, detail=message)
    )


def classify_playwright_error(exc: PlaywrightError, command: str) -> TransportError:
    """Translate a Playwright exception into the transport taxonomy."""

    message = getattr(exc, "message", None) or str(exc)
    if isinstance(exc, PWTimeout) or "script timeout" in message:
        return _record(TransportTimeout(f"{command} timed out", command=command, detail=message))

    reason = _reject_reason(message)
    if reason is RejectReason.OTHER and command != "navigate":
        reason = RejectReason.SCRIPT
    return _record(
        TransportRejected(f"{command} rejected", reason=reason, command=command, detail=message)
    )


def make_driver(
    *,
    headless: bool = True,
    socks5: str = "",
    binary_location: str = "",
) -> WebDriver:
    """Instantiate a Chrome WebDriver instance."""

    chrome_options = Options()
    if binary_location:
        chrome_options.binary_location = binary_location
    if headless:
        chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--window-size=1920,1080")
    if config.is_valid_socks5(socks5):
        chrome_options.add_argument(f"--proxy-server=socks5://{socks5}")
    return webdriver.Chrome(options=chrome_options)


class SeleniumSession:
    """``AutomationSession`` backed by a Selenium WebDriver."""

    def __init__(
        self,
        driver: WebDriver,
        *,
        page_load_timeout_ms: int = config.PAGE_LOAD_TIMEOUT_MS,
        script_timeout_ms: int = config.SCRIPT_TIMEOUT_MS,
    ) -> None:
        self.driver = driver
        self.driver.set_page_load_timeout(page_load_timeout_ms / 1000)
        self.driver.set_script_timeout(script_timeout_ms / 1000)

    @classmethod
    def create(
        cls,
        *,
        gui: bool = config.GUI_MODE,
        socks5: str = config.SOCKS5_PROXY,
        page_load_timeout_ms: int = config.PAGE_LOAD_TIMEOUT_MS,
        script_timeout_ms: int = config.SCRIPT_TIMEOUT_MS,
    ) -> "SeleniumSession":
        driver = make_driver(
            headless=not gui,
            socks5=socks5,
            binary_location=config.BROWSER_BINARY,
        )
        return cls(
            driver,
            page_load_timeout_ms=page_load_timeout_ms,
            script_timeout_ms=script_timeout_ms,
        )

    def navigate(self, url: str) -> None:
        try:
            self.driver.get(url)
        except WebDriverException as exc:
            raise classify_webdriver_error(exc, "navigate") from exc

    def evaluate(self, script: str, args: Sequence[Any] = ()) -> str:
        try:
            return _as_text(self.driver.execute_script(script, *args))
        except WebDriverException as exc:
            raise classify_webdriver_error(exc, "evaluate") from exc

    def evaluate_async(self, script: str, args: Sequence[Any] = ()) -> str:
        try:
            return _as_text(self.driver.execute_async_script(script, *args))
        except WebDriverException as exc:
            raise classify_webdriver_error(exc, "evaluate_async") from exc

    def current_url(self) -> str:
        try:
            return self.driver.current_url
        except WebDriverException as exc:
            raise classify_webdriver_error(exc, "current_url") from exc

    def close(self) -> None:
        self.driver.quit()

    def __enter__(self) -> "SeleniumSession":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


# Scripts are written WebDriver-style (``arguments[i]``, callback last for the
# async form); these wrappers give Playwright the same calling convention.
_SYNC_WRAPPER = "({source, args}) => (new Function(source)).apply(null, args)"

_ASYNC_WRAPPER = """({source, args, timeoutMs}) => new Promise((resolve, reject) => {
    const timer = setTimeout(() => reject(new Error('script timeout')), timeoutMs);
    const done = (value) => { clearTimeout(timer); resolve(value); };
    try {
        (new Function(source)).apply(null, [...args, done]);
    } catch (err) {
        clearTimeout(timer);
        reject(err);
    }
})"""


class PlaywrightSession:
    """``AutomationSession`` backed by a Playwright Chromium page."""

    def __init__(
        self,
        page: Any,
        *,
        page_load_timeout_ms: int = config.PAGE_LOAD_TIMEOUT_MS,
        script_timeout_ms: int = config.SCRIPT_TIMEOUT_MS,
        closer: Optional[Any] = None,
    ) -> None:
        self.page = page
        self.page_load_timeout_ms = page_load_timeout_ms
        self.script_timeout_ms = script_timeout_ms
        self._closer = closer

    @classmethod
    def launch(
        cls,
        *,
        gui: bool = config.GUI_MODE,
        socks5: str = config.SOCKS5_PROXY,
        page_load_timeout_ms: int = config.PAGE_LOAD_TIMEOUT_MS,
        script_timeout_ms: int = config.SCRIPT_TIMEOUT_MS,
    ) -> "PlaywrightSession":
        pw = sync_playwright().start()
        launch_kwargs: dict[str, Any] = {"headless": not gui}
        if config.is_valid_socks5(socks5):
            launch_kwargs["proxy"] = {"server": f"socks5://{socks5}"}
        browser = pw.chromium.launch(**launch_kwargs)
        # Wrappers compile the script text at runtime, which strict CSPs forbid.
        context = browser.new_context(bypass_csp=True, locale="en-US")
        page = context.new_page()

        def _close() -> None:
            context.close()
            browser.close()
            pw.stop()

        return cls(
            page,
            page_load_timeout_ms=page_load_timeout_ms,
            script_timeout_ms=script_timeout_ms,
            closer=_close,
        )

    def navigate(self, url: str) -> None:
        try:
            self.page.goto(url, wait_until="load", timeout=self.page_load_timeout_ms)
        except PlaywrightError as exc:
            raise classify_playwright_error(exc, "navigate") from exc

    def evaluate(self, script: str, args: Sequence[Any] = ()) -> str:
        try:
            result = self.page.evaluate(_SYNC_WRAPPER, {"source": script, "args": list(args)})
        except PlaywrightError as exc:
            raise classify_playwright_error(exc, "evaluate") from exc
        return _as_text(result)

    def evaluate_async(self, script: str, args: Sequence[Any] = ()) -> str:
        payload = {
            "source": script,
            "args": list(args),
            "timeoutMs": self.script_timeout_ms,
        }
        try:
            result = self.page.evaluate(_ASYNC_WRAPPER, payload)
        except PlaywrightError as exc:
            raise classify_playwright_error(exc, "evaluate_async") from exc
        return _as_text(result)

    def current_url(self) -> str:
        return self.page.url

    def close(self) -> None:
        if self._closer is not None:
            self._closer()
            self._closer = None

    def __enter__(self) -> "PlaywrightSession":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = [
    "AutomationSession",
    "SeleniumSession",
    "PlaywrightSession",
    "make_driver",
    "classify_webdriver_error",
    "classify_playwright_error",
]
