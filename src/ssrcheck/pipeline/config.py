"""Configuration resolver.

Defaults, then the JSON config file, then environment variables (``.env`` is
loaded first), then explicit CLI overrides. The result is an immutable
``RunConfig`` the pipeline trusts without re-validating.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import RunConfig, SendStyle
from .utils import load_json

DEFAULT_CONFIG_PATH = str(Path.home() / ".config" / "check-ssr" / "config.json")
DEFAULT_WORK_DIR = str(Path.home() / "Documents" / "CheckSSR")

DEFAULTS: Dict[str, Any] = {
    "work_dir": DEFAULT_WORK_DIR,
    "mail_to": "",
    "send_style": "attachment",
    "stocks_path": "",
    "mail_from": "",
    "mail_transport": "smtp",
    "smtp_host": "localhost",
    "smtp_port": 25,
    "smtp_user": "",
    "smtp_password": "",
    "smtp_ssl": False,
    "sendmail_path": "sendmail",
    "log_dir": "",
}

ENV_KEYS = {
    "work_dir": "SSRCHECK_WORK_DIR",
    "mail_to": "SSRCHECK_MAIL_TO",
    "send_style": "SSRCHECK_SEND_STYLE",
    "stocks_path": "SSRCHECK_STOCKS_PATH",
    "mail_from": "SSRCHECK_MAIL_FROM",
    "mail_transport": "SSRCHECK_MAIL_TRANSPORT",
    "smtp_host": "SMTP_HOST",
    "smtp_port": "SMTP_PORT",
    "smtp_user": "SMTP_USER",
    "smtp_password": "SMTP_PASSWORD",
    "smtp_ssl": "SMTP_SSL",
    "sendmail_path": "SENDMAIL_PATH",
    "log_dir": "SSRCHECK_LOG_DIR",
}

# shell-era SENDSTYLE values
LEGACY_SEND_STYLES = {"0": SendStyle.BODY, "1": SendStyle.ATTACHMENT}

MAIL_TRANSPORTS = {"smtp", "sendmail"}


def load_config_file(path: str) -> Dict[str, Any]:
    try:
        data = load_json(path)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Failed to read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root must be a JSON object: {path}")
    return data


def resolve_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RunConfig:
    if environ is None:
        load_dotenv()
        environ = os.environ

    merged: Dict[str, Any] = dict(DEFAULTS)
    merged.update(load_config_file(config_path))
    for key, env_name in ENV_KEYS.items():
        value = environ.get(env_name)
        if value not in (None, ""):
            merged[key] = value
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    unknown = sorted(set(merged) - set(DEFAULTS))
    if unknown:
        raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")
    return _normalize(merged)


def _normalize(values: Dict[str, Any]) -> RunConfig:
    work_dir = _as_path(values["work_dir"], "work_dir")
    mail_to = str(values["mail_to"] or "").strip()
    if not mail_to or "@" not in mail_to:
        raise ConfigurationError("mail_to must be set to an email address.")

    stocks_path = values["stocks_path"] or os.path.join(work_dir, "positions.txt")
    log_dir = values["log_dir"] or os.path.join(work_dir, "logs")

    transport = str(values["mail_transport"]).strip().lower()
    if transport not in MAIL_TRANSPORTS:
        allowed = ", ".join(sorted(MAIL_TRANSPORTS))
        raise ConfigurationError(f"mail_transport must be one of: {allowed}")

    return RunConfig(
        work_dir=work_dir,
        mail_to=mail_to,
        send_style=parse_send_style(values["send_style"]),
        stocks_path=_as_path(stocks_path, "stocks_path"),
        mail_from=str(values["mail_from"] or "").strip(),
        mail_transport=transport,
        smtp_host=str(values["smtp_host"]).strip() or "localhost",
        smtp_port=_as_port(values["smtp_port"]),
        smtp_user=str(values["smtp_user"] or ""),
        smtp_password=str(values["smtp_password"] or ""),
        smtp_ssl=_as_bool(values["smtp_ssl"], "smtp_ssl"),
        sendmail_path=str(values["sendmail_path"]).strip() or "sendmail",
        log_dir=_as_path(log_dir, "log_dir"),
    )


def parse_send_style(value: Any) -> SendStyle:
    if isinstance(value, SendStyle):
        return value
    text = str(value).strip().lower()
    if text in LEGACY_SEND_STYLES:
        return LEGACY_SEND_STYLES[text]
    try:
        return SendStyle(text)
    except ValueError as exc:
        raise ConfigurationError(
            f"send_style must be 'attachment' or 'body' (got {value!r})."
        ) from exc


def _as_path(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{name} must be a non-empty path.")
    return os.path.abspath(os.path.expanduser(value.strip()))


def _as_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"smtp_port must be an integer (got {value!r}).") from exc
    if not 0 < port < 65536:
        raise ConfigurationError(f"smtp_port out of range: {port}")
    return port


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    raise ConfigurationError(f"{name} must be a boolean (got {value!r}).")


def write_default_config(path: str, work_dir: str = DEFAULT_WORK_DIR) -> bool:
    """Write a starter config file; returns False when one already exists."""
    if os.path.exists(path):
        return False
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    payload = {
        "work_dir": work_dir,
        "mail_to": "your.email@example.com",
        "send_style": "attachment",
        "stocks_path": os.path.join(work_dir, "positions.txt"),
    }
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)
        handle.write("\n")
    os.chmod(path, 0o600)
    return True
