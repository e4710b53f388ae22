"""
MailNotifier -- plain-text run summary over SMTP.

SMTP settings come from ``NotificationDef``; the password is read from the
environment variable it names, never from the YAML file itself.
"""

from __future__ import annotations

import os
import smtplib
from email.message import EmailMessage

from transfer_config.schema import NotificationDef
from transfer_kernel.exceptions import NotificationError, TransferAbortedError, TransferError
from transfer_kernel.logging_config import get_logger
from transfer_pipeline.domain.types import SkipReason, TargetVariant, TransferRunResult

logger = get_logger("services.notification")


def format_summary(result: TransferRunResult, config_name: str | None = None) -> str:
    """Plain-text summary: processed vs inserted per variant and the skip breakdown."""
    lines = []
    if config_name:
        lines.append(f"Transfer: {config_name}")
    lines += [
        f"Run id: {result.run_id}",
        f"State: {result.state.value}",
        f"Started: {result.started_at.isoformat() if result.started_at else '-'}",
        f"Completed: {result.completed_at.isoformat() if result.completed_at else '-'}",
        f"Duration: {result.duration_ms} ms",
        "",
        f"Rows processed: {result.processed}",
        f"Pages read: {result.pages}",
        f"Commits: {result.commits}",
    ]
    for variant in TargetVariant:
        key = variant.value
        lines.append(
            f"Variant {key}: queued {result.queued.get(key, 0)}, "
            f"inserted {result.inserted.get(key, 0)}, "
            f"batches {result.flushes.get(key, 0)}"
        )
    lines.append(f"Skipped: {result.total_skipped}")
    for reason in SkipReason:
        lines.append(f"  {reason.value}: {result.skipped.get(reason.value, 0)}")
    if result.marked_processed:
        lines.append(f"Marked processed: {result.marked_processed}")
    return "\n".join(lines) + "\n"


def format_failure(error: TransferError, config_name: str | None = None) -> str:
    lines = []
    if config_name:
        lines.append(f"Transfer: {config_name}")
    lines += [f"Transfer FAILED ({error.code})", str(error)]
    if isinstance(error, TransferAbortedError):
        lines += [
            "",
            f"Run id: {error.run_id}",
            f"Last window: {error.window}",
            f"Rows processed: {error.rows_processed}",
            f"Inserted (committed): {error.inserted}",
            f"Commits: {error.commits}",
        ]
    return "\n".join(lines) + "\n"


class MailNotifier:
    """Sends run summaries; a disabled notifier sends nothing."""

    def __init__(self, settings: NotificationDef, config_name: str | None = None):
        self._settings = settings
        self._config_name = config_name

    @property
    def enabled(self) -> bool:
        return self._settings.enabled and bool(self._settings.recipients)

    def send_summary(self, result: TransferRunResult) -> bool:
        subject = f"{self._settings.subject}: {result.state.value}"
        return self.send(subject, format_summary(result, self._config_name))

    def send_failure(self, error: TransferError) -> bool:
        subject = f"{self._settings.subject}: FAILED"
        return self.send(subject, format_failure(error, self._config_name))

    def send(self, subject: str, body: str) -> bool:
        """
        Send one message. Returns False when notification is disabled.

        Raises:
            NotificationError: password variable unset or SMTP failure.
        """
        s = self._settings
        if not self.enabled:
            logger.debug("notification_disabled")
            return False

        password = None
        if s.username:
            password = os.environ.get(s.password_env) if s.password_env else None
            if password is None:
                raise NotificationError(s.recipients, f"password variable {s.password_env!r} is not set")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = s.sender
        message["To"] = ", ".join(s.recipients)
        message.set_content(body)

        try:
            with smtplib.SMTP(s.host, s.port, timeout=30) as smtp:
                if s.use_tls:
                    smtp.starttls()
                if s.username:
                    smtp.login(s.username, password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(s.recipients, f"{type(exc).__name__}: {exc}") from exc

        logger.info("notification_sent", extra={"recipients": list(s.recipients), "subject": subject})
        return True
