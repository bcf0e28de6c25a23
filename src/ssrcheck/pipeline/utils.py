import json
import os
import signal
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Optional

import requests

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

Logger = Callable[..., None]


def load_json(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def make_logger(verbose: bool = False, log_path: Optional[str] = None) -> Logger:
    def log(level: str, message: str, force: bool = False) -> None:
        timestamp = datetime.utcnow().isoformat() + "Z"
        line = f"{timestamp} [{level}] {message}"
        if log_path:
            os.makedirs(os.path.dirname(log_path), exist_ok=True)
            with open(log_path, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        if level == "INFO" and not verbose and not force:
            return
        print(line)

    return log


def get_http_headers(referer: str = "") -> Dict[str, str]:
    agent = os.getenv("HTTP_USER_AGENT", "ssrcheck/1.0 (personal position monitor)")
    headers = {"User-Agent": agent}
    if referer:
        headers["Referer"] = referer
    return headers


_LAST_REQUEST_TS: Optional[float] = None


def request_with_retry(
    url: str,
    session: Optional[requests.Session] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 30.0,
    log: Optional[Logger] = None,
) -> requests.Response:
    max_retries = max(1, int(os.getenv("REQUEST_MAX_RETRIES", "3") or 3))
    backoff_sec = float(os.getenv("REQUEST_BACKOFF_SEC", "1.5") or 0)
    min_interval = float(os.getenv("REQUEST_MIN_INTERVAL_SEC", "0.5") or 0)
    getter = session.get if session is not None else requests.get

    global _LAST_REQUEST_TS
    for attempt in range(1, max_retries + 1):
        if _LAST_REQUEST_TS is not None and min_interval > 0:
            elapsed = time.time() - _LAST_REQUEST_TS
            if elapsed < min_interval:
                time.sleep(min_interval - elapsed)
        try:
            response = getter(url, headers=headers, timeout=timeout, allow_redirects=True)
        except (requests.ConnectionError, requests.Timeout) as exc:
            _LAST_REQUEST_TS = time.time()
            if attempt >= max_retries:
                raise
            if log is not None:
                log("WARN", f"GET {url} attempt={attempt} failed: {exc}")
            time.sleep(backoff_sec * (2 ** (attempt - 1)))
            continue
        _LAST_REQUEST_TS = time.time()
        if response.status_code in RETRY_STATUS_CODES and attempt < max_retries:
            if log is not None:
                log("WARN", f"GET {url} attempt={attempt} status={response.status_code}")
            time.sleep(backoff_sec * (2 ** (attempt - 1)))
            continue
        response.raise_for_status()
        return response
    response.raise_for_status()
    return response


def safe_call(label: str, func: Callable, default, log=None):
    try:
        return func()
    except Exception as exc:
        if log is None:
            print(f"{label} failed: {exc}")
        else:
            log("WARN", f"{label} failed: {exc}")
        return default


@contextmanager
def run_workdir(work_dir: str) -> Iterator[str]:
    """Yield a fresh temp directory inside ``work_dir``, removed on exit.

    SIGTERM and SIGHUP are turned into ``SystemExit`` while the scope is
    active so a scheduler kill still unwinds it.
    """
    os.makedirs(work_dir, exist_ok=True)

    def _terminate(signum, frame):
        raise SystemExit(128 + signum)

    previous = {}
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            previous[signum] = signal.signal(signum, _terminate)
        except ValueError:
            # not the main thread
            pass
    try:
        with tempfile.TemporaryDirectory(prefix="ssrcheck-", dir=work_dir) as temp_dir:
            yield temp_dir
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
