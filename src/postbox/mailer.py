"""
SMTP Mailer
===========

Implements MailDeliveryContract over smtplib.

One SMTP connection is opened by connect() and reused by every send(). The
envelope is reset after each send so recipients never carry over
(INV-SEND-01). Failed sends are reported, never retried (INV-SEND-02).
"""

from __future__ import annotations

import logging
import mimetypes
import smtplib
import socket
from email.message import EmailMessage
from email.utils import make_msgid
from typing import TYPE_CHECKING

from contracts import AttachmentIOError, DeliveryResult, SendError, SendTimeoutError
from src.postbox.attachment import Attachment
from src.postbox.mail import Mail

if TYPE_CHECKING:
    from src.postbox.credentials import Credentials

logger = logging.getLogger("postbox.mailer")


def _attachment_payload(attachment: Attachment) -> bytes:
    """PRE-SEND-03: payload from data, else from an existing file."""
    if attachment.data is not None:
        try:
            return attachment.content
        except AttachmentIOError as e:
            raise SendError(str(e)) from e
    if not attachment.path_exists():
        raise SendError(f"Attachment {attachment.name!r} has no data and no readable path")
    try:
        return attachment.file_path.read_bytes()
    except OSError as e:
        raise SendError(f"Cannot read attachment {attachment.name!r}: {e}") from e


def _content_type(attachment: Attachment) -> tuple[str, str]:
    guessed, _ = mimetypes.guess_type(attachment.file_name or attachment.name)
    if guessed:
        maintype, subtype = guessed.split("/", 1)
        return maintype, subtype
    if attachment.type:
        return "application", attachment.type.lower()
    return "application", "octet-stream"


def build_message(mail: Mail) -> EmailMessage:
    """
    Flatten a Mail into an EmailMessage.

    Bcc is left out of the headers; it only appears in the envelope.
    """
    if mail.from_ is None:
        raise SendError("Mail has no sender")
    if not mail.to:
        raise SendError("Mail has no recipients")

    message = EmailMessage()
    message["From"] = mail.from_.format()
    message["To"] = ", ".join(address.format() for address in mail.to)
    if mail.cc:
        message["Cc"] = mail.cc.format()
    if mail.reply_to:
        message["Reply-To"] = mail.reply_to.format()
    message["Subject"] = mail.subject
    message["Message-ID"] = make_msgid(domain=mail.from_.email.rsplit("@", 1)[-1])

    message.set_content(mail.text)
    if mail.html:
        message.add_alternative(mail.html, subtype="html")

    for attachment in mail.attachments:
        maintype, subtype = _content_type(attachment)
        message.add_attachment(
            _attachment_payload(attachment),
            maintype=maintype,
            subtype=subtype,
            filename=attachment.file_name or attachment.name,
        )

    return message


def envelope_recipients(mail: Mail) -> list[str]:
    recipients = [address.email for address in mail.to]
    for address in (mail.cc, mail.bcc):
        if address is not None:
            recipients.append(address.email)
    return recipients


class SmtpMailer:
    """SMTP delivery bound to one account."""

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials
        self._client: smtplib.SMTP | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """Open and authenticate the SMTP connection."""
        creds = self._credentials
        client = None
        try:
            if creds.smtp_ssl:
                client = smtplib.SMTP_SSL(creds.smtp_server, creds.smtp_port, timeout=creds.timeout)
            else:
                client = smtplib.SMTP(creds.smtp_server, creds.smtp_port, timeout=creds.timeout)
                if creds.smtp_starttls:
                    client.starttls()
            client.login(creds.username, creds.password)
        except (smtplib.SMTPException, OSError) as e:
            # Close the socket opened before the failure
            if client is not None:
                client.close()
            if isinstance(e, socket.timeout):
                raise SendTimeoutError(f"Timed out connecting to {creds.smtp_server}") from e
            if isinstance(e, smtplib.SMTPAuthenticationError):
                raise SendError(f"SMTP authentication failed: {e}") from e
            raise SendError(f"Failed to connect to {creds.smtp_server}: {e}") from e

        self._client = client
        logger.info("Connected to SMTP server %s", creds.smtp_server)

    def disconnect(self) -> None:
        if self._client:
            try:
                self._client.quit()
            except (smtplib.SMTPException, OSError):
                pass
            finally:
                self._client = None

    def __enter__(self) -> SmtpMailer:
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def send(self, mail: Mail) -> DeliveryResult:
        """
        Deliver mail over the open connection.

        POST-SEND-01: DeliveryResult with accepted and refused recipients.
        ERRORS: SEND_FAILED, SEND_TIMEOUT
        """
        message = build_message(mail)
        recipients = envelope_recipients(mail)

        if self._client is None:
            self.connect()
        client = self._client

        try:
            refused = client.send_message(
                message, from_addr=mail.from_.email, to_addrs=recipients
            )
        except socket.timeout as e:
            raise SendTimeoutError("SMTP server timed out during send") from e
        except smtplib.SMTPRecipientsRefused as e:
            raise SendError(f"All recipients refused: {sorted(e.recipients)}") from e
        except smtplib.SMTPServerDisconnected as e:
            self._client = None
            raise SendError(f"SMTP server disconnected: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise SendError(f"Delivery failed: {e}") from e
        finally:
            self._reset_envelope()

        accepted = [r for r in recipients if r not in refused]
        logger.info("Sent message to %d recipient(s), %d refused", len(accepted), len(refused))
        return DeliveryResult(
            accepted=accepted,
            refused=dict(refused),
            message_id=message["Message-ID"],
        )

    def _reset_envelope(self) -> None:
        """INV-SEND-01"""
        if self._client is None:
            return
        try:
            self._client.rset()
        except (smtplib.SMTPException, OSError):
            logger.warning("SMTP RSET failed; dropping connection")
            self.disconnect()
