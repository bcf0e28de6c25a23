from datetime import date
from typing import Optional

import requests

from .errors import EmptyPayloadError, FetchError
from .utils import Logger, get_http_headers, request_with_retry, safe_call

MAIN_URL = "https://www.nasdaqtrader.com/trader.aspx?id=ShortSaleCircuitBreaker"
FILE_BASE_URL = "https://www.nasdaqtrader.com/dynamic/symdir/shorthalts"
FILE_NAME_TEMPLATE = "shorthalts{date}.txt"
FETCH_TIMEOUT_SEC = 30.0


def date_stamp(run_date: date) -> str:
    return run_date.strftime("%Y%m%d")


def ssr_file_name(stamp: str) -> str:
    return FILE_NAME_TEMPLATE.format(date=stamp)


def ssr_file_url(stamp: str) -> str:
    return f"{FILE_BASE_URL}/{ssr_file_name(stamp)}"


def prime_session(session: requests.Session, log: Optional[Logger] = None) -> bool:
    # nasdaqtrader refuses the file pull without a prior visit to the SSR page
    response = safe_call(
        "SSR page priming request",
        lambda: session.get(MAIN_URL, headers=get_http_headers(), timeout=FETCH_TIMEOUT_SEC),
        None,
        log,
    )
    if response is None:
        return False
    if not response.ok:
        if log is not None:
            log("WARN", f"SSR page priming request answered status={response.status_code}")
        return False
    return True


def fetch_ssr_list(
    stamp: str,
    session: Optional[requests.Session] = None,
    log: Optional[Logger] = None,
) -> str:
    """Download the SSR list for ``stamp`` (YYYYMMDD) and return its text.

    Raises ``FetchError`` once the bounded retries are exhausted or on a
    non-retryable HTTP status, and ``EmptyPayloadError`` when the server
    answers with an empty document.
    """
    if session is None:
        with requests.Session() as own_session:
            return fetch_ssr_list(stamp, session=own_session, log=log)
    prime_session(session, log)

    url = ssr_file_url(stamp)
    if log is not None:
        log("INFO", f"Fetching SSR list url={url}")
    try:
        response = request_with_retry(
            url,
            session=session,
            headers=get_http_headers(referer=MAIN_URL),
            timeout=FETCH_TIMEOUT_SEC,
            log=log,
        )
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch SSR list for {stamp}: {exc}") from exc

    text = response.text or ""
    if not text.strip():
        raise EmptyPayloadError(f"SSR list for {stamp} was empty ({url})")
    if log is not None:
        log("INFO", f"SSR list bytes={len(response.content)} lines={len(text.splitlines())}")
    return text


def save_ssr_list(text: str, path: str) -> None:
    # newline="" keeps upstream line endings untouched
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(text)
