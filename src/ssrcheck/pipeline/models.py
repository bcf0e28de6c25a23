from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class SendStyle(str, Enum):
    ATTACHMENT = "attachment"
    BODY = "body"


@dataclass(frozen=True)
class RunConfig:
    work_dir: str
    mail_to: str
    send_style: SendStyle
    stocks_path: str
    mail_from: str = ""
    mail_transport: str = "smtp"
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_ssl: bool = False
    sendmail_path: str = "sendmail"
    log_dir: Optional[str] = None


@dataclass(frozen=True)
class RunContext:
    run_date: date
    date_stamp: str
    temp_dir: str
    ssr_path: str
    hits_path: str


@dataclass
class MatchSet:
    lines: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.lines)

    def is_empty(self) -> bool:
        return not self.lines

    def render(self) -> str:
        if not self.lines:
            return ""
        return "\n".join(self.lines) + "\n"
