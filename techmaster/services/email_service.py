import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional

from techmaster.pipeline.email_compiler import html_to_text


@dataclass
class EmailConfig:
    """Email service configuration"""
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    from_email: str
    reply_to: Optional[str] = None
    use_tls: bool = True
    timeout: float = 60.0


class EmailServiceError(Exception):
    """Custom exception for email service failures"""
    pass


class EmailService:
    """
    SMTP mail transport. One connection per message.

    ``smtplib`` blocks, so every send runs in a worker thread.
    """

    def __init__(self, config: EmailConfig, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.config = config
        self.smtp_factory = smtp_factory
        self.logger = logging.getLogger(__name__)

        if not self.config.smtp_password:
            raise EmailServiceError("SMTP password required. Set SMTP_PASSWORD environment variable.")

    def build_message(self, from_addr: str, to: str, subject: str, html: str) -> MIMEMultipart:
        message = MIMEMultipart('alternative')
        message['Subject'] = subject
        message['From'] = from_addr
        message['To'] = to
        if self.config.reply_to:
            message['Reply-To'] = self.config.reply_to

        message.attach(MIMEText(html_to_text(html), 'plain', 'utf-8'))
        message.attach(MIMEText(html, 'html', 'utf-8'))
        return message

    async def send(self, from_addr: str, to: str, subject: str, html: str) -> None:
        """Send one message. Raises EmailServiceError on any SMTP failure."""
        message = self.build_message(from_addr, to, subject, html)
        await asyncio.to_thread(self._send_via_smtp, message)
        self.logger.info("Newsletter sent to %s", to)

    def _open_connection(self) -> smtplib.SMTP:
        server = self.smtp_factory(self.config.smtp_host, self.config.smtp_port, timeout=self.config.timeout)
        try:
            if self.config.use_tls:
                server.starttls()
            server.login(self.config.smtp_user, self.config.smtp_password)
        except Exception:
            self._quit(server)
            raise
        return server

    def _quit(self, server: smtplib.SMTP) -> None:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError) as e:
            self.logger.debug("SMTP quit failed: %s", e)

    def _send_via_smtp(self, message: MIMEMultipart) -> None:
        """Send email via SMTP."""
        try:
            server = self._open_connection()
            try:
                server.send_message(message)
            finally:
                self._quit(server)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error("SMTP send to %s failed: %s", message['To'], e)
            raise EmailServiceError(f"SMTP send failed: {e}") from e

    async def test_connection(self) -> bool:
        """
        Test SMTP connection and authentication.
        """
        self.logger.info("Testing SMTP connection to %s:%s", self.config.smtp_host, self.config.smtp_port)
        try:
            server = await asyncio.to_thread(self._open_connection)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error("SMTP connection test failed: %s", e)
            return False
        await asyncio.to_thread(self._quit, server)
        self.logger.info("SMTP connection and authentication successful")
        return True
