from datetime import date

import pytest
import requests

from conftest import FakeResponse, FakeSession
from ssrcheck.pipeline import sources
from ssrcheck.pipeline.errors import EmptyPayloadError, FetchError


def test_file_url_embeds_date_stamp() -> None:
    stamp = sources.date_stamp(date(2021, 3, 5))
    assert stamp == "20210305"
    assert sources.ssr_file_url(stamp) == (
        "https://www.nasdaqtrader.com/dynamic/symdir/shorthalts/shorthalts20210305.txt"
    )


def test_fetch_primes_session_and_sends_referer(silent_log) -> None:
    session = FakeSession([FakeResponse(200, "AAPL,Halted\n")])
    assert sources.fetch_ssr_list("20210305", session=session, log=silent_log) == "AAPL,Halted\n"
    assert session.calls[0][0] == sources.MAIN_URL
    url, kwargs = session.file_calls()[0]
    assert url.endswith("shorthalts20210305.txt")
    assert kwargs["headers"]["Referer"] == sources.MAIN_URL
    assert kwargs["timeout"] == 30.0
    assert kwargs["allow_redirects"] is True


def test_priming_failure_is_not_fatal(silent_log) -> None:
    session = FakeSession(
        [FakeResponse(200, "AAPL,Halted\n")],
        prime_error=requests.ConnectionError("refused"),
    )
    assert sources.fetch_ssr_list("20210305", session=session, log=silent_log) == "AAPL,Halted\n"
    assert any(level == "WARN" and "priming" in text for level, text in silent_log.lines)


def test_server_errors_are_retried_then_fatal(silent_log) -> None:
    session = FakeSession([FakeResponse(500), FakeResponse(500), FakeResponse(500)])
    with pytest.raises(FetchError) as excinfo:
        sources.fetch_ssr_list("20210305", session=session, log=silent_log)
    assert not isinstance(excinfo.value, EmptyPayloadError)
    assert len(session.file_calls()) == 3
    assert "20210305" in excinfo.value.message


def test_transient_failure_recovers_within_retry_budget(silent_log) -> None:
    session = FakeSession([requests.Timeout("slow"), FakeResponse(503), FakeResponse(200, "MSFT\n")])
    assert sources.fetch_ssr_list("20210305", session=session, log=silent_log) == "MSFT\n"
    assert len(session.file_calls()) == 3


def test_connection_errors_exhaust_retries(silent_log) -> None:
    session = FakeSession([requests.ConnectionError("down")] * 3)
    with pytest.raises(FetchError):
        sources.fetch_ssr_list("20210305", session=session, log=silent_log)
    assert len(session.file_calls()) == 3


def test_not_found_is_not_retried(silent_log) -> None:
    session = FakeSession([FakeResponse(404), FakeResponse(200, "AAPL\n")])
    with pytest.raises(FetchError):
        sources.fetch_ssr_list("20210306", session=session, log=silent_log)
    assert len(session.file_calls()) == 1


def test_empty_document_is_a_distinct_error(silent_log) -> None:
    session = FakeSession([FakeResponse(200, "  \r\n")])
    with pytest.raises(EmptyPayloadError, match="empty"):
        sources.fetch_ssr_list("20210305", session=session, log=silent_log)


def test_save_keeps_line_endings(tmp_path) -> None:
    path = tmp_path / "shorthalts20210305.txt"
    sources.save_ssr_list("AAPL\r\nMSFT\r\n", str(path))
    assert path.read_bytes() == b"AAPL\r\nMSFT\r\n"


def test_priming_error_status_is_logged_and_not_fatal(silent_log) -> None:
    session = FakeSession([FakeResponse(200, "AAPL,Halted\n")], prime_status=503)
    assert sources.prime_session(session, silent_log) is False
    assert ("WARN", "SSR page priming request answered status=503") in silent_log.lines
    assert sources.fetch_ssr_list("20210305", session=session, log=silent_log) == "AAPL,Halted\n"


def test_own_session_is_closed(monkeypatch, silent_log) -> None:
    class ClosingSession(FakeSession):
        closed = False

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            ClosingSession.closed = True
            return False

    created = ClosingSession([FakeResponse(200, "AAPL\n")])
    monkeypatch.setattr(sources.requests, "Session", lambda: created)
    assert sources.fetch_ssr_list("20210305", log=silent_log) == "AAPL\n"
    assert ClosingSession.closed is True
