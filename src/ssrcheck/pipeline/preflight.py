import os
import re
import shutil
from typing import Iterable, List, Optional

from .errors import EnvironmentCheckError

TICKER_PATTERN = re.compile(r"^[A-Z0-9.-]+$")

POSITIONS_TEMPLATE = """\
# CheckSSR Positions File
# Add one ticker symbol per line
# Lines starting with # are ignored (comments)
# Example:

# Technology
AAPL
MSFT
GOOG

# Financial
JPM
BAC
WFC

# Energy
XOM
CVX
"""


def is_comment_or_blank(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def write_positions_template(path: str) -> bool:
    if os.path.exists(path):
        return False
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(POSITIONS_TEMPLATE)
    return True


def check_user(euid: Optional[int]) -> None:
    if euid == 0:
        raise EnvironmentCheckError("Can't be root! Run the check as an unprivileged user.")


def check_commands(required_commands: Iterable[str]) -> None:
    missing = [name for name in required_commands if shutil.which(name) is None]
    if missing:
        raise EnvironmentCheckError(
            f"{', '.join(missing)} is required...install and try again!"
        )


def load_positions(stocks_path: str) -> List[str]:
    """Read and validate the positions file, returning tickers in file order."""
    if not os.path.isfile(stocks_path):
        write_positions_template(stocks_path)
        raise EnvironmentCheckError(
            f"{stocks_path} not found...a template was created, edit it and try again!"
        )

    try:
        # utf-8-sig drops the BOM some editors put in front of line 1
        with open(stocks_path, "r", encoding="utf-8-sig") as handle:
            raw_lines = handle.read().splitlines()
    except UnicodeDecodeError as exc:
        raise EnvironmentCheckError(f"{stocks_path} is not valid UTF-8: {exc}") from exc

    tickers: List[str] = []
    invalid: List[str] = []
    for number, line in enumerate(raw_lines, start=1):
        if is_comment_or_blank(line):
            continue
        token = line.strip()
        if not TICKER_PATTERN.match(token):
            invalid.append(f"line {number}: {token!r}")
            continue
        tickers.append(token)

    if invalid:
        raise EnvironmentCheckError(
            f"Invalid ticker(s) in {stocks_path}: {'; '.join(invalid)}"
        )
    if not tickers:
        raise EnvironmentCheckError(f"{stocks_path} has no tickers...add some and try again!")
    return tickers


def run_preflight(
    required_commands: Iterable[str],
    stocks_path: str,
    euid: Optional[int] = None,
) -> List[str]:
    check_user(euid)
    check_commands(required_commands)
    return load_positions(stocks_path)


def current_euid() -> Optional[int]:
    geteuid = getattr(os, "geteuid", None)
    return geteuid() if geteuid is not None else None
