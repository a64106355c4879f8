import logging
import smtplib
from email.message import EmailMessage

from config import settings

_LOGGER = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.EMAIL_FROM)


def send_email(to: str, subject: str, text: str, ref_id: str | None = None) -> None:
    if not is_configured():
        _LOGGER.info("[EMAIL] DEV mode: would send %r to %s", subject, to)
        return

    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    if ref_id:
        message["X-Entity-Ref-ID"] = ref_id
    message.set_content(text)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as smtp_client:
        if settings.SMTP_USE_TLS:
            smtp_client.starttls()
        if settings.SMTP_USER:
            smtp_client.login(settings.SMTP_USER, settings.SMTP_PASS or "")
        smtp_client.send_message(message)
