import os
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from ..pipeline.models import MatchSet, RunConfig, SendStyle

SUBJECT_TEMPLATE = "Positions found on SSR {date}"
FAILURE_SUBJECT_TEMPLATE = "Could not pull SSR file for {date}"
BLOCKED_SUBJECT_TEMPLATE = "Could not pull SSR file for {date} (likely rate-limited)"

_LINE_BREAK = re.compile(r"\r\n?")


def normalize_line_endings(content: str) -> str:
    return _LINE_BREAK.sub("\n", content)


def build_summary(count: int, stamp: str) -> str:
    return f"Found {count} positions on NASDAQ SSR list for {stamp}"


def _envelope(message, config: RunConfig, subject: str):
    message["Subject"] = subject
    message["From"] = config.mail_from or config.mail_to
    message["To"] = config.mail_to
    return message


def build_hits_message(
    matches: MatchSet,
    stamp: str,
    config: RunConfig,
    hits_path: str,
):
    subject = SUBJECT_TEMPLATE.format(date=stamp)
    with open(hits_path, "r", encoding="utf-8", newline="") as handle:
        content = handle.read()

    if config.send_style == SendStyle.BODY:
        return _envelope(MIMEText(normalize_line_endings(content), "plain", "utf-8"), config, subject)

    message = MIMEMultipart("mixed")
    message.attach(MIMEText(build_summary(matches.count, stamp) + "\n", "plain", "utf-8"))
    attachment = MIMEText(content, "plain", "utf-8")
    attachment.add_header("Content-Disposition", "attachment", filename=os.path.basename(hits_path))
    message.attach(attachment)
    return _envelope(message, config, subject)


def build_failure_message(stamp: str, config: RunConfig, reason: str):
    body = "\n".join(
        [
            f"The NASDAQ SSR list for {stamp} could not be downloaded.",
            "",
            f"Reason: {reason}",
            "",
            "Positions were NOT checked today.",
        ]
    )
    return _envelope(MIMEText(body + "\n", "plain", "utf-8"), config, FAILURE_SUBJECT_TEMPLATE.format(date=stamp))


def build_blocked_message(stamp: str, config: RunConfig, excerpt: str = ""):
    lines = [
        f"Could not pull the NASDAQ SSR list for {stamp}; the site answered with a denial page.",
        "This usually means requests were throttled (likely rate-limited).",
        "",
        "Positions were NOT checked today.",
    ]
    if excerpt:
        lines.extend(["", "Page excerpt:", excerpt])
    return _envelope(MIMEText("\n".join(lines) + "\n", "plain", "utf-8"), config, BLOCKED_SUBJECT_TEMPLATE.format(date=stamp))
