from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from app.extractor import client as client_mod
from app.extractor import config, fetcher, timeline
from app.extractor.client import SiteClient
from app.extractor.errors import AllCachesInvalid, ConfigError
from app.extractor.progress import EventKind, ProgressNotifier
from app.extractor.rebuild import CacheMode
from app.extractor.sites import CAMD, GTRANS, TWTL, TWTL_LOGIN_URL, Category
from tests.test_fingerprint_cache import _configure_temp_paths
from tests.test_session import _FakeSession, _timeout


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(fetcher.time, "sleep", lambda seconds: recorded.append(seconds))
    monkeypatch.setattr(timeline.time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


def _client(session, cache, profile=CAMD) -> tuple[SiteClient, io.StringIO, io.StringIO]:  # noqa: ANN001
    out, err = io.StringIO(), io.StringIO()
    notifier = ProgressNotifier(stdout=out, stderr=err, color=False)
    return SiteClient(session, profile, notifier=notifier, cache=cache, entrypoint="tests"), out, err


def test_handle_returns_raw_text_unchanged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    raw = "______hello\nused when meeting or greeting someone:______more"
    session = _FakeSession(evaluate_async=[raw])
    client, out, _ = _client(session, cache)

    assert client.handle("hello", CacheMode.LOCAL) == raw

    assert session.calls[0] == ("navigate", "https://dictionary.cambridge.org/us/dictionary/english/hello")
    assert out.getvalue() == (
        "[Cambridge Dictionary] Initializing...ok\n"
        "[Cambridge Dictionary] Fetching result...ok\n"
    )


def test_handle_uses_configured_cache_mode(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "CACHE_MODE_DEFAULT", "remote")
    session = _FakeSession(evaluate=['"[7,7]\\n-"'], evaluate_async=["text"])
    client, _, _ = _client(session, cache)

    assert client.handle("world") == "text"
    assert session.calls[0] == ("navigate", CAMD.remote_url)
    assert session.commands("evaluate_async") == [("evaluate_async", [[7, 7]])]


def test_handle_gtrans_query_is_percent_encoded(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    session = _FakeSession(evaluate_async=["你好"])
    client, _, _ = _client(session, cache, GTRANS)

    assert client.handle("hi there?", CacheMode.LOCAL, source_lang="en", target_lang="zh-CN") == "你好"

    navigated = session.commands("navigate")[0][1]
    assert navigated == "https://translate.google.com/?sl=en&tl=zh-CN&text=hi%20there%3F&op=translate"


def test_handle_with_predefined_candidates(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    session = _FakeSession(evaluate_async=[_timeout("evaluate_async"), "from second"])
    client, _, _ = _client(session, cache)

    assert client.handle("x", CacheMode.LOCAL, predefined=[[1], [2]]) == "from second"
    assert cache.exists(Category.CAMD) is False


def test_handle_reports_one_fatal_event(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    session = _FakeSession(evaluate_async=[_timeout("evaluate_async")] * 2)
    client, out, err = _client(session, cache)

    with pytest.raises(AllCachesInvalid):
        client.handle("hello", CacheMode.LOCAL)

    fatal = [e for e in client.notifier.events if e.kind is EventKind.FATAL_ERROR]
    assert len(fatal) == 1
    assert err.getvalue().endswith("error: all caches invalid (Cambridge Dictionary)\n")
    assert out.getvalue().startswith("[Cambridge Dictionary] Initializing...ok\n")


def test_handle_rejects_invalid_proxy(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "SOCKS5_PROXY", "not-a-proxy")
    session = _FakeSession()
    client, _, err = _client(session, cache)

    with pytest.raises(ConfigError):
        client.handle("hello", CacheMode.LOCAL)

    assert session.calls == []
    assert "socks5 proxy is not a valid value" in err.getvalue()


def test_pause_safe_interrupt_ends_early(monkeypatch: pytest.MonkeyPatch) -> None:
    def _interrupt(_seconds: float) -> None:
        raise KeyboardInterrupt

    monkeypatch.setattr(client_mod.time, "sleep", _interrupt)
    client, out, _ = _client(_FakeSession(), cache=None)

    assert client.pause(30, safe=True) is True
    assert "Please finish in 30 seconds, press Ctrl-C here if finished." in out.getvalue()

    with pytest.raises(KeyboardInterrupt):
        client.pause(5, safe=False)


def test_pause_runs_to_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    slept: list[float] = []
    monkeypatch.setattr(client_mod.time, "sleep", lambda seconds: slept.append(seconds))
    client, _, _ = _client(_FakeSession(), cache=None)

    assert client.pause(3) is False
    assert slept == [3]


def test_handle_timeline_returns_json_array(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = _configure_temp_paths(tmp_path, monkeypatch)
    session = _FakeSession(
        evaluate_async=['["twtl_v1\\n1\\nfirst", "twtl_v1\\n2\\nsecond", "twtl_v1\\n3\\nthird"]'],
        current_url="https://twitter.com/someone",
    )
    client, out, _ = _client(session, cache, TWTL)

    text = client.handle("@someone", CacheMode.LOCAL, limit=2)

    assert json.loads(text) == ["twtl_v1\n1\nfirst", "twtl_v1\n2\nsecond"]
    assert session.calls[0] == ("navigate", "https://twitter.com/someone")
    assert "[Twitter Timeline] 2/2 (100%)\n" in out.getvalue()
    assert any(e.kind is EventKind.SIMPLE_PROGRESS for e in client.notifier.events)


def test_login_requires_gui(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "GUI_MODE", False)
    session = _FakeSession()
    client, _, err = _client(session, None, TWTL)

    with pytest.raises(ConfigError):
        client.login(5)

    assert session.calls == []
    assert "signing in requires GUI mode" in err.getvalue()


def test_login_opens_sign_in_page_and_waits(monkeypatch: pytest.MonkeyPatch) -> None:
    slept: list[float] = []
    monkeypatch.setattr(client_mod.time, "sleep", lambda seconds: slept.append(seconds))
    monkeypatch.setattr(config, "GUI_MODE", True)
    session = _FakeSession()
    client, out, _ = _client(session, None, TWTL)

    assert client.login(7) is False

    assert session.calls == [("navigate", TWTL_LOGIN_URL)]
    assert slept == [7]
    assert "press Ctrl-C here if finished" in out.getvalue()

    out, err = io.StringIO(), io.StringIO()
    notifier = ProgressNotifier(stdout=out, stderr=err, color=False)
    interactive = SiteClient(_FakeSession(), TWTL, notifier=notifier, cache=None, entrypoint="interactive")
    interactive.login(3)
    assert "do NOT press other keys" in out.getvalue()


def test_login_without_sign_in_flow(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "GUI_MODE", True)
    client, _, _ = _client(_FakeSession(), None, CAMD)

    with pytest.raises(ConfigError):
        client.login()
