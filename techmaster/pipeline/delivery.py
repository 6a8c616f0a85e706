import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional

from techmaster.models.content import NewsletterContent
from techmaster.pipeline.email_compiler import BRAND, EmailCompiler


SUBJECT = "🚀 TechMaster Weekly - Your Latest Tech Insights"


@dataclass
class DeliveryFailure:
    email: str
    reason: str


@dataclass
class DeliveryReport:
    delivered: int = 0
    failed: List[DeliveryFailure] = field(default_factory=list)
    attempted: int = 0
    dry_run: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed)


def recipient_address(recipient: Any) -> str:
    """Address of a subscriber row, mapping with ``email``, or plain string."""
    if isinstance(recipient, str):
        value = recipient
    elif isinstance(recipient, Mapping):
        value = recipient.get("email")
    else:
        value = getattr(recipient, "email", None)
    return value.strip() if isinstance(value, str) else ""


class DeliveryDriver:
    """
    Renders an issue once and mails it to each recipient in turn.

    A failed send is logged and reported; it never stops the remaining
    recipients. The transport is anything with
    ``async send(from_addr, to, subject, html)``.
    """

    def __init__(
        self,
        compiler: EmailCompiler,
        transport: Any,
        from_email: str,
        subject: str = SUBJECT,
        dry_run: bool = False,
    ) -> None:
        self.compiler = compiler
        self.transport = transport
        self.from_email = from_email
        self.subject = subject
        self.dry_run = dry_run
        self.logger = logging.getLogger(__name__)

    @property
    def sender(self) -> str:
        return f'"{BRAND}" <{self.from_email}>'

    async def deliver(
        self,
        content: NewsletterContent,
        recipients: Iterable[Any],
        date: Optional[datetime] = None,
    ) -> DeliveryReport:
        html = self.compiler.render(content, date=date)
        recipients = list(recipients)
        report = DeliveryReport(attempted=len(recipients), dry_run=self.dry_run)

        self.logger.info("📧 Sending emails to %d subscribers...", len(recipients))
        for recipient in recipients:
            address = recipient_address(recipient)
            if not address:
                self.logger.warning("Skipping subscriber with no email address: %r", recipient)
                report.failed.append(DeliveryFailure(email="", reason="missing email address"))
                continue

            if self.dry_run:
                self.logger.info("[dry-run] Would send newsletter to %s", address)
                continue

            try:
                await self.transport.send(self.sender, address, self.subject, html)
            except Exception as e:  # noqa: BLE001
                self.logger.error("❌ Failed to send email to %s: %s", address, e)
                report.failed.append(DeliveryFailure(email=address, reason=str(e)))
                continue
            report.delivered += 1
            self.logger.info("✅ Email sent to %s", address)

        self.logger.info(
            "Delivery finished: %d delivered, %d failed%s",
            report.delivered,
            report.failed_count,
            " (dry run)" if self.dry_run else "",
        )
        return report
