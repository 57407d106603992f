import logging
import smtplib
from email.mime.text import MIMEText
from email.utils import formatdate

from backend.core import config

logger = logging.getLogger(__name__)


class EmailNotConfiguredError(RuntimeError):
    pass


class EmailSendError(RuntimeError):
    """Raised when the transport is configured but delivery fails."""


class SmtpEmailSender:
    """Sends HTML email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        from_email: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.from_email = from_email
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to_email: str, subject: str, html: str) -> None:
        if not self.host:
            raise EmailNotConfiguredError("SMTP_HOST is not set")
        if not self.from_email:
            raise EmailNotConfiguredError("SMTP_FROM_EMAIL is not set")

        msg = MIMEText(html, "html", "utf-8")
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.ehlo()
                if self.use_tls:
                    server.starttls()
                    server.ehlo()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("SMTP email failed: to=%s", to_email)
            raise EmailSendError(f"SMTP email failed: {exc}") from exc

        logger.info("SMTP email sent: to=%s subject=%s", to_email, subject)


class ConsoleEmailSender:
    """Drops outgoing email after logging it. Used when email is disabled."""

    def send(self, to_email: str, subject: str, html: str) -> None:
        logger.info("Email delivery disabled, dropping message: to=%s subject=%s", to_email, subject)


def get_email_sender():
    if not config.EMAIL_ENABLED:
        return ConsoleEmailSender()
    return SmtpEmailSender(
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
        from_email=config.SMTP_FROM_EMAIL,
        username=config.SMTP_USERNAME,
        password=config.SMTP_PASSWORD,
        use_tls=config.SMTP_USE_TLS,
    )
