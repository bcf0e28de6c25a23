import smtplib
import subprocess

from ..pipeline.errors import DeliveryError
from ..pipeline.models import RunConfig


def send_message(message, config: RunConfig) -> None:
    """Submit ``message`` through the configured transport; no retry."""
    if config.mail_transport == "sendmail":
        _send_with_sendmail(message, config)
    else:
        _send_with_smtp(message, config)


def _send_with_smtp(message, config: RunConfig) -> None:
    smtp_cls = smtplib.SMTP_SSL if config.smtp_ssl else smtplib.SMTP
    try:
        with smtp_cls(config.smtp_host, config.smtp_port, timeout=30) as server:
            if config.smtp_user:
                server.login(config.smtp_user, config.smtp_password)
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise DeliveryError(
            f"Mail submission via {config.smtp_host}:{config.smtp_port} failed: {exc}"
        ) from exc


def _send_with_sendmail(message, config: RunConfig) -> None:
    try:
        result = subprocess.run(
            [config.sendmail_path, "-t", "-oi"],
            input=message.as_bytes(),
            capture_output=True,
            timeout=60,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise DeliveryError(f"Mail submission via {config.sendmail_path} failed: {exc}") from exc
    if result.returncode != 0:
        detail = result.stderr.decode("utf-8", errors="replace").strip()
        raise DeliveryError(
            f"{config.sendmail_path} exited with status {result.returncode}: {detail}"
        )
