from __future__ import annotations

from typing import Any, Callable, Iterable

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PWTimeout
from selenium.common.exceptions import (
    JavascriptException,
    TimeoutException,
    WebDriverException,
)

from app.extractor import session as session_mod
from app.extractor.errors import RejectReason, TransportRejected, TransportTimeout


def _timeout(command: str = "evaluate") -> TransportTimeout:
    return TransportTimeout(f"{command} timed out", command=command)


def _rejected(reason: RejectReason = RejectReason.OTHER, command: str = "navigate") -> TransportRejected:
    return TransportRejected(f"{command} rejected", reason=reason, command=command)


class _FakeSession:
    """Scripted automation session.

    Each command pops its next outcome: an exception is raised, a callable is
    called with ``(target, args)``, anything else is returned.
    """

    def __init__(
        self,
        *,
        navigate: Iterable[Any] = (),
        evaluate: Iterable[Any] = (),
        evaluate_async: Iterable[Any] = (),
        current_url: str = "",
    ) -> None:
        self.nav_outcomes = list(navigate)
        self.eval_outcomes = list(evaluate)
        self.async_outcomes = list(evaluate_async)
        self.url = current_url
        self.calls: list[tuple] = []

    @staticmethod
    def _next(outcomes: list, default: Any, target: Any, args: list) -> Any:
        outcome = outcomes.pop(0) if outcomes else default
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(target, args)
        return outcome

    def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))
        self._next(self.nav_outcomes, None, url, [])

    def evaluate(self, script: str, args=()) -> str:  # noqa: ANN001
        self.calls.append(("evaluate", list(args)))
        return self._next(self.eval_outcomes, "", script, list(args))

    def evaluate_async(self, script: str, args=()) -> str:  # noqa: ANN001
        self.calls.append(("evaluate_async", list(args)))
        return self._next(self.async_outcomes, "", script, list(args))

    def current_url(self) -> str:
        self.calls.append(("current_url", self.url))
        return self.url

    def commands(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


class _FakeDriver:
    def __init__(self, *, get: Callable[[str], None] | None = None, result: Any = None) -> None:
        self._get = get
        self._result = result
        self.timeouts: dict[str, float] = {}
        self.quit_called = False
        self.scripts: list[tuple[str, tuple]] = []
        self.current_url = "about:blank"

    def set_page_load_timeout(self, seconds: float) -> None:
        self.timeouts["page_load"] = seconds

    def set_script_timeout(self, seconds: float) -> None:
        self.timeouts["script"] = seconds

    def get(self, url: str) -> None:
        if self._get is not None:
            self._get(url)

    def execute_script(self, script: str, *args: Any) -> Any:
        self.scripts.append((script, args))
        return self._result

    def execute_async_script(self, script: str, *args: Any) -> Any:
        self.scripts.append((script, args))
        if isinstance(self._result, BaseException):
            raise self._result
        return self._result

    def quit(self) -> None:
        self.quit_called = True


@pytest.fixture(autouse=True)
def _quiet_events(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(session_mod, "_extractor_event", lambda *_a, **_k: None)


@pytest.mark.parametrize(
    "exc",
    [
        TimeoutException("timeout: Timed out receiving message from renderer"),
        TimeoutException("script timeout"),
        WebDriverException("timeout: Timed out receiving message from renderer: 29.5"),
    ],
)
def test_webdriver_timeouts_are_classified_as_timeout(exc: WebDriverException) -> None:
    error = session_mod.classify_webdriver_error(exc, "navigate")
    assert isinstance(error, TransportTimeout)
    assert error.command == "navigate"


@pytest.mark.parametrize(
    "message, reason",
    [
        ("Reached error page: about:neterror?e=dnsNotFound&u=https", RejectReason.NETWORK),
        ("unknown error: net::ERR_NAME_NOT_RESOLVED", RejectReason.NETWORK),
        ("Reached error page: about:neterror?e=proxyConnectFailure", RejectReason.PROXY),
        ("unknown error: net::ERR_PROXY_CONNECTION_FAILED", RejectReason.PROXY),
        ("invalid session id", RejectReason.OTHER),
    ],
)
def test_webdriver_rejections_carry_reason(message: str, reason: RejectReason) -> None:
    error = session_mod.classify_webdriver_error(WebDriverException(message), "navigate")
    assert isinstance(error, TransportRejected)
    assert error.reason is reason
    assert message in error.detail


def test_javascript_error_is_script_rejection() -> None:
    error = session_mod.classify_webdriver_error(
        JavascriptException("javascript error: x is not defined"), "evaluate"
    )
    assert isinstance(error, TransportRejected)
    assert error.reason is RejectReason.SCRIPT


def test_selenium_session_applies_timeouts_and_encodes_results() -> None:
    driver = _FakeDriver(result=[4, 0, 1])
    session = session_mod.SeleniumSession(driver, page_load_timeout_ms=1500, script_timeout_ms=2500)

    assert driver.timeouts == {"page_load": 1.5, "script": 2.5}
    assert session.evaluate("return arguments[0];", ["x"]) == "[4,0,1]"
    assert driver.scripts[-1][1] == ("x",)

    session.close()
    assert driver.quit_called is True


def test_selenium_session_navigation_timeout_raises_transport_timeout() -> None:
    def _slow(_url: str) -> None:
        raise TimeoutException("timeout")

    session = session_mod.SeleniumSession(_FakeDriver(get=_slow))
    with pytest.raises(TransportTimeout):
        session.navigate("https://example.com")


def test_selenium_session_async_script_timeout() -> None:
    session = session_mod.SeleniumSession(_FakeDriver(result=TimeoutException("script timeout")))
    with pytest.raises(TransportTimeout) as excinfo:
        session.evaluate_async("arguments[0]();")
    assert excinfo.value.command == "evaluate_async"


class _FakePage:
    def __init__(self, *, goto_error: Exception | None = None, result: Any = "", error: Exception | None = None):
        self.goto_error = goto_error
        self.result = result
        self.error = error
        self.evaluated: list[tuple[str, dict]] = []
        self.url = "about:blank"

    def goto(self, url: str, **_kwargs: Any) -> None:
        if self.goto_error is not None:
            raise self.goto_error

    def evaluate(self, expression: str, arg: dict) -> Any:
        self.evaluated.append((expression, arg))
        if self.error is not None:
            raise self.error
        return self.result


def test_playwright_session_wraps_scripts_webdriver_style() -> None:
    page = _FakePage(result="hello")
    session = session_mod.PlaywrightSession(page, script_timeout_ms=1234)

    assert session.evaluate_async("arguments[1](arguments[0]);", ["hello"]) == "hello"
    _, payload = page.evaluated[-1]
    assert payload == {"source": "arguments[1](arguments[0]);", "args": ["hello"], "timeoutMs": 1234}


def test_playwright_script_timeout_maps_to_transport_timeout() -> None:
    page = _FakePage(error=PlaywrightError("Error: script timeout"))
    session = session_mod.PlaywrightSession(page)
    with pytest.raises(TransportTimeout):
        session.evaluate_async("/* never calls back */")


def test_playwright_navigation_errors_are_classified() -> None:
    timed_out = session_mod.PlaywrightSession(_FakePage(goto_error=PWTimeout("Timeout 30000ms exceeded.")))
    with pytest.raises(TransportTimeout):
        timed_out.navigate("https://example.com")

    offline = session_mod.PlaywrightSession(
        _FakePage(goto_error=PlaywrightError("page.goto: net::ERR_INTERNET_DISCONNECTED"))
    )
    with pytest.raises(TransportRejected) as excinfo:
        offline.navigate("https://example.com")
    assert excinfo.value.reason is RejectReason.NETWORK


def test_make_driver_options(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[Any] = []
    monkeypatch.setattr(session_mod.webdriver, "Chrome", lambda options: captured.append(options))

    session_mod.make_driver(headless=True, socks5="127.0.0.1:1080")
    session_mod.make_driver(headless=False, socks5="bogus")

    headless_args, gui_args = captured[0].arguments, captured[1].arguments
    assert "--headless=new" in headless_args
    assert "--proxy-server=socks5://127.0.0.1:1080" in headless_args
    assert "--headless=new" not in gui_args
    assert not any(arg.startswith("--proxy-server") for arg in gui_args)


def test_sessions_report_current_url() -> None:
    driver = _FakeDriver()
    driver.current_url = "https://x.com/i/flow/login"
    page = _FakePage()
    page.url = "https://x.com/mafa_rs"

    assert session_mod.SeleniumSession(driver).current_url() == "https://x.com/i/flow/login"
    assert session_mod.PlaywrightSession(page).current_url() == "https://x.com/mafa_rs"
