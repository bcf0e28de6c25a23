import os
from datetime import date, datetime
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

import requests

from ..notify import mailer, message
from . import matcher, preflight, sources
from .errors import FetchError, SoftBlockError, SSRCheckError
from .models import MatchSet, RunConfig, RunContext
from .utils import Logger, make_logger, run_workdir

MARKET_TIMEZONE = ZoneInfo("America/New_York")

Sender = Callable[..., None]


def market_today() -> date:
    return datetime.now(MARKET_TIMEZONE).date()


def required_commands(config: RunConfig) -> List[str]:
    if config.mail_transport == "sendmail":
        return [config.sendmail_path]
    return []


def build_run_context(run_date: date, temp_dir: str) -> RunContext:
    stamp = sources.date_stamp(run_date)
    return RunContext(
        run_date=run_date,
        date_stamp=stamp,
        temp_dir=temp_dir,
        ssr_path=os.path.join(temp_dir, sources.ssr_file_name(stamp)),
        hits_path=os.path.join(temp_dir, "hits.txt"),
    )


def fetch_stage(
    ctx: RunContext,
    config: RunConfig,
    log: Logger,
    send: Sender,
    session: Optional[requests.Session] = None,
) -> str:
    try:
        document = sources.fetch_ssr_list(ctx.date_stamp, session=session, log=log)
    except FetchError as exc:
        log("ERROR", exc.message)
        send(message.build_failure_message(ctx.date_stamp, config, exc.message), config)
        log("INFO", f"Failure notice sent to {config.mail_to}", force=True)
        raise
    sources.save_ssr_list(document, ctx.ssr_path)
    return document


def match_stage(
    ctx: RunContext,
    config: RunConfig,
    document: str,
    tickers: List[str],
    log: Logger,
    send: Sender,
) -> MatchSet:
    try:
        matches = matcher.find_matches(document, tickers)
    except SoftBlockError as exc:
        log("ERROR", exc.message)
        send(message.build_blocked_message(ctx.date_stamp, config, exc.excerpt), config)
        log("INFO", f"Rate-limit notice sent to {config.mail_to}", force=True)
        raise
    with open(ctx.hits_path, "w", encoding="utf-8", newline="") as handle:
        handle.write(matches.render())
    log("INFO", f"Matched lines={matches.count} tickers={len(tickers)}", force=True)
    return matches


def notify_stage(ctx: RunContext, config: RunConfig, matches: MatchSet, log: Logger, send: Sender) -> bool:
    if matches.is_empty():
        log("INFO", f"No positions on SSR list for {ctx.date_stamp}; no email sent", force=True)
        return False
    email = message.build_hits_message(matches, ctx.date_stamp, config, ctx.hits_path)
    send(email, config)
    log(
        "INFO",
        f"Sent {config.send_style.value} notification to {config.mail_to} lines={matches.count}",
        force=True,
    )
    return True


def run_pipeline(
    config: RunConfig,
    run_date: Optional[date] = None,
    verbose: bool = False,
    session: Optional[requests.Session] = None,
    send: Sender = mailer.send_message,
    euid: Optional[int] = None,
    log: Optional[Logger] = None,
) -> int:
    """Run preflight, fetch, match and notify once; return the exit code."""
    run_date = run_date or market_today()
    stamp = sources.date_stamp(run_date)
    if log is None:
        log_path = os.path.join(config.log_dir, f"checkssr_{stamp}.log") if config.log_dir else None
        log = make_logger(verbose, log_path)
    if euid is None:
        euid = preflight.current_euid()

    log("INFO", f"Run start date={stamp} style={config.send_style.value} positions={config.stocks_path}", force=True)
    try:
        tickers = preflight.run_preflight(required_commands(config), config.stocks_path, euid)
        log("INFO", f"Preflight ok tickers={len(tickers)}")
        with run_workdir(config.work_dir) as temp_dir:
            ctx = build_run_context(run_date, temp_dir)
            document = fetch_stage(ctx, config, log, send, session)
            matches = match_stage(ctx, config, document, tickers, log, send)
            notify_stage(ctx, config, matches, log, send)
    except SSRCheckError as exc:
        log("ERROR", f"{type(exc).__name__}: {exc.message} (exit {exc.exit_code})")
        return exc.exit_code
    log("INFO", f"Run complete date={stamp}", force=True)
    return 0
