import pytest
import requests

from ssrcheck.pipeline.models import RunConfig, SendStyle


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.content = text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Serves queued responses for the SSR file; the priming page answers prime_status."""

    def __init__(self, responses, prime_error: Exception = None, prime_status: int = 200) -> None:
        self.responses = list(responses)
        self.prime_error = prime_error
        self.prime_status = prime_status
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if "trader.aspx" in url:
            if self.prime_error is not None:
                raise self.prime_error
            return FakeResponse(self.prime_status, "<html>SSR</html>")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def file_calls(self):
        return [call for call in self.calls if "shorthalts" in call[0]]


class RecordingSender:
    def __init__(self, error: Exception = None) -> None:
        self.sent = []
        self.error = error

    def __call__(self, message, config) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(message)


@pytest.fixture(autouse=True)
def fast_http(monkeypatch):
    monkeypatch.setenv("REQUEST_BACKOFF_SEC", "0")
    monkeypatch.setenv("REQUEST_MIN_INTERVAL_SEC", "0")
    monkeypatch.setenv("REQUEST_MAX_RETRIES", "3")


@pytest.fixture
def make_config(tmp_path):
    def factory(send_style=SendStyle.ATTACHMENT, positions=None, **kwargs):
        stocks_path = tmp_path / "positions.txt"
        if positions is not None:
            stocks_path.write_text(positions, encoding="utf-8")
        values = {
            "work_dir": str(tmp_path / "work"),
            "mail_to": "trader@example.com",
            "send_style": send_style,
            "stocks_path": str(stocks_path),
            "log_dir": str(tmp_path / "logs"),
        }
        values.update(kwargs)
        return RunConfig(**values)

    return factory


@pytest.fixture
def silent_log():
    lines = []

    def log(level, message, force=False):
        lines.append((level, message))

    log.lines = lines
    return log
