from __future__ import annotations

import logging
import smtplib
from email.errors import MessageError
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr

from src.core.config import PipelineConfig
from src.core.errors import NotificationError
from src.services.base import BaseService
from src.services.document import document_filename

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def is_deliverable_address(address: str) -> bool:
    """One bare address, no display name and no header line breaks."""
    if any(ch in address for ch in "\r\n"):
        return False
    name, parsed = parseaddr(address)
    return not name and parsed == address and "@" in parsed.strip("@")


class EmailNotifier(BaseService):
    """Sends the rendered PDF to a stakeholder through an SMTP relay (STARTTLS)."""

    def __init__(self, config: PipelineConfig, smtp_factory=smtplib.SMTP) -> None:
        super().__init__(config)
        self._smtp_factory = smtp_factory

    def _build_message(self, recipient: str, document: bytes, inspection_id: str) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["Subject"] = f"Inspection report {inspection_id}"
        msg["From"] = f"{self.config.mail_from_name} <{self.config.mail_from}>"
        msg["To"] = recipient

        text = (
            f"Hello,\n\n"
            f"The inspection report {inspection_id} has been submitted. "
            f"The PDF summary is attached.\n\n"
            f"This is an automated message. Please do not reply to this email.\n"
        )
        msg.attach(MIMEText(text, "plain", "utf-8"))

        attachment = MIMEApplication(document, _subtype="pdf")
        attachment.add_header("Content-Disposition", "attachment", filename=document_filename(inspection_id))
        msg.attach(attachment)
        return msg

    def _send(self, recipient: str, document: bytes, inspection_id: str) -> None:
        try:
            msg = self._build_message(recipient, document, inspection_id)
            with self._smtp_factory(self.config.smtp_host, self.config.smtp_port) as server:
                server.starttls()
                server.login(self.config.smtp_user, self.config.smtp_password)
                server.sendmail(self.config.mail_from, [recipient], msg.as_string())
        except smtplib.SMTPAuthenticationError as exc:
            raise NotificationError("SMTP authentication failed. Check email credentials.") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Email delivery failed: {exc}") from exc
        except (MessageError, ValueError) as exc:
            raise NotificationError(f"Could not build the notification email: {exc}") from exc

    # PUBLIC_INTERFACE
    def notify(self, recipient: str, document: bytes, inspection_id: str) -> bool:
        """
        Email the PDF to recipient.

        Returns:
            True when the relay accepted the message. False when no recipient was
            given, mail is not configured, or delivery failed; failures are logged
            and never raised.
        """
        recipient = (recipient or "").strip()
        if not recipient:
            return False
        if not is_deliverable_address(recipient):
            logger.warning("Notification address for %s is not a single valid address; skipping", inspection_id)
            return False
        if not self.config.mail_configured:
            logger.warning("Email not configured. SMTP credentials or sender address missing.")
            return False

        try:
            self._send(recipient, document, inspection_id)
        except NotificationError as exc:
            logger.error("Notification for %s not delivered: %s", inspection_id, exc)
            return False

        logger.info("Inspection report %s emailed to %s", inspection_id, recipient)
        return True
