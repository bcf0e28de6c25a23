import re
from typing import Iterable, List, Pattern

from bs4 import BeautifulSoup

from .errors import SoftBlockError
from .models import MatchSet
from .preflight import is_comment_or_blank

SOFT_BLOCK_MARKER = "SAMEORIGIN"
EXCERPT_LENGTH = 300


def token_pattern(ticker: str) -> Pattern[str]:
    """Whole-token pattern: no letter or digit directly before or after."""
    return re.compile(r"(?<![A-Za-z0-9])" + re.escape(ticker) + r"(?![A-Za-z0-9])")


def page_excerpt(document: str, limit: int = EXCERPT_LENGTH) -> str:
    text = BeautifulSoup(document, "html.parser").get_text(" ", strip=True)
    text = " ".join(text.split())
    return text[:limit]


def check_soft_block(document: str) -> None:
    if SOFT_BLOCK_MARKER in document:
        raise SoftBlockError(
            "Could not pull SSR file: upstream returned a denial page (likely rate-limited)",
            excerpt=page_excerpt(document),
        )


def find_matches(document: str, tickers: Iterable[str]) -> MatchSet:
    """Collect every document line holding a whole-token hit, per ticker.

    Lines are split on ``\\n`` only, so a trailing ``\\r`` stays on the
    collected line. A line hit by two different tickers is collected once for
    each of them.
    """
    check_soft_block(document)
    lines = document.split("\n")
    matches = MatchSet()
    for ticker in tickers:
        if is_comment_or_blank(ticker):
            continue
        pattern = token_pattern(ticker.strip())
        matches.lines.extend(line for line in lines if pattern.search(line))
    return matches
