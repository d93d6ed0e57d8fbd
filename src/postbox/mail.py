"""
Message Model
=============

Mail is an immutable value; MailDraft builds one; FullMail pairs a Mail with
the mailbox metadata of the fetch that produced it.

INV-GLOBAL-02: Mail and FullMail are values; updates are copies.
INV-BUILD-02: FullMail is a snapshot. Flag changes made through MailManager
              act on the mailbox and are not reflected here.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any

from src.postbox.address import Address, RecipientSpec, resolve_recipients
from src.postbox.attachment import Attachment


def _optional_address(value: Address | str | None) -> Address | None:
    if value is None:
        return None
    return Address.coerce(value)


@dataclass(frozen=True)
class Mail:
    """A composed or fetched email message."""

    from_: Address | None = None
    to: tuple[Address, ...] = ()
    cc: Address | None = None
    bcc: Address | None = None
    reply_to: Address | None = None
    subject: str = ""
    text: str = ""
    html: str = ""
    attachments: tuple[Attachment, ...] = ()

    def get_attachment(self, name: str) -> Attachment | None:
        """POST-MAIL-01: lookup by attachment name."""
        for attachment in self.attachments:
            if attachment.name == name:
                return attachment
        return None

    def has_attachment(self, name: str) -> bool:
        return self.get_attachment(name) is not None

    # -------------------------------------------------------------------------
    # Copy-and-modify
    # -------------------------------------------------------------------------

    def with_from(self, address: Address | str) -> Mail:
        return replace(self, from_=Address.coerce(address))

    def with_to(self, recipients: RecipientSpec) -> Mail:
        return replace(self, to=resolve_recipients(recipients))

    def with_cc(self, address: Address | str | None) -> Mail:
        return replace(self, cc=_optional_address(address))

    def with_bcc(self, address: Address | str | None) -> Mail:
        return replace(self, bcc=_optional_address(address))

    def with_reply_to(self, address: Address | str | None) -> Mail:
        return replace(self, reply_to=_optional_address(address))

    def with_subject(self, subject: str) -> Mail:
        return replace(self, subject=subject)

    def with_text(self, text: str) -> Mail:
        return replace(self, text=text)

    def with_html(self, html: str) -> Mail:
        return replace(self, html=html)

    def with_attachment(self, attachment: Attachment | str) -> Mail:
        if not isinstance(attachment, Attachment):
            attachment = Attachment.from_file(attachment)
        return replace(self, attachments=self.attachments + (attachment,))

    # -------------------------------------------------------------------------
    # Serialized forms
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """POST-MAIL-02"""
        return {
            "from": self.from_.format() if self.from_ else None,
            "to": [address.format() for address in self.to],
            "cc": self.cc.format() if self.cc else None,
            "bcc": self.bcc.format() if self.bcc else None,
            "subject": self.subject,
            "text": self.text,
            "attachments": [attachment.name for attachment in self.attachments],
        }

    def format(self) -> str:
        """Labelled multi-line form used in logs and debugging output."""
        lines = [
            "MAIL:",
            f"\n FROM: {self.from_ or ''}",
            f"\n TO: {','.join(str(address) for address in self.to)}",
            f"\n CC: {self.cc or ''}",
            f"\n BCC: {self.bcc or ''}",
            f"\n SUBJECT: {self.subject}",
            f"\n MESSAGE: {self.text}",
            f"\n ATTACHMENTS: {', '.join(a.name for a in self.attachments)}",
        ]
        return "".join(lines)

    def __str__(self) -> str:
        return self.format()


class MailDraft:
    """
    Mutable builder for Mail.

        mail = (
            MailDraft()
            .sender("Me <me@example.com>")
            .to(Named({"bob": "bob@example.com"}))
            .subject("Hi")
            .msg("Hello")
            .build()
        )
    """

    def __init__(self, mail: Mail | None = None) -> None:
        mail = mail or Mail()
        self._from = mail.from_
        self._to: list[Address] = list(mail.to)
        self._cc = mail.cc
        self._bcc = mail.bcc
        self._reply_to = mail.reply_to
        self._subject = mail.subject
        self._text = mail.text
        self._html = mail.html
        self._attachments: list[Attachment] = list(mail.attachments)

    def sender(self, address: Address | str) -> MailDraft:
        self._from = Address.coerce(address)
        return self

    def to(self, recipients: RecipientSpec) -> MailDraft:
        """Replace the recipient list."""
        self._to = list(resolve_recipients(recipients))
        return self

    def add_to(self, address: Address | str) -> MailDraft:
        self._to.append(Address.coerce(address))
        return self

    def cc(self, address: Address | str) -> MailDraft:
        self._cc = Address.coerce(address)
        return self

    def bcc(self, address: Address | str) -> MailDraft:
        self._bcc = Address.coerce(address)
        return self

    def reply_to(self, address: Address | str) -> MailDraft:
        self._reply_to = Address.coerce(address)
        return self

    def subject(self, subject: str = "") -> MailDraft:
        self._subject = subject
        return self

    def text(self, text: str = "") -> MailDraft:
        self._text = text
        return self

    def html(self, html: str) -> MailDraft:
        self._html = html
        return self

    def msg(self, text: str, template: str = "<p>%s</p>") -> MailDraft:
        """Set the text body and an html body rendered from a single-slot template."""
        self._text = text
        self._html = template % text
        return self

    def attach(self, attachment: Attachment | str) -> MailDraft:
        """Add an Attachment, or a file path to be loaded at send time."""
        if not isinstance(attachment, Attachment):
            attachment = Attachment.from_file(attachment)
        self._attachments.append(attachment)
        return self

    def attachments(self, attachments: list[Attachment | str]) -> MailDraft:
        for attachment in attachments:
            self.attach(attachment)
        return self

    def build(self) -> Mail:
        return Mail(
            from_=self._from,
            to=tuple(self._to),
            cc=self._cc,
            bcc=self._bcc,
            reply_to=self._reply_to,
            subject=self._subject,
            text=self._text,
            html=self._html,
            attachments=tuple(self._attachments),
        )


@dataclass(frozen=True)
class MailboxMetadata:
    """Mailbox-side fields of one fetched message."""

    sender: str | None = None
    return_path: str = ""
    date: datetime | None = None
    mail_date: datetime | None = None
    unix_date: datetime | None = None
    message_id: str | None = None
    newsgroups: str | None = None
    followup_to: str | None = None
    references: str | None = None
    recent: bool = False
    unseen: bool = False
    flagged: bool = False
    answered: bool = False
    deleted: bool = False
    draft: bool = False
    msg_number: int = 0
    uid: int = 0
    size: int = 0
    fetch_from: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class FullMail:
    """A fetched message: the Mail plus a snapshot of its mailbox metadata."""

    mail: Mail
    metadata: MailboxMetadata

    def to_dict(self) -> dict[str, Any]:
        result = self.mail.to_dict()
        metadata = {
            f.name: getattr(self.metadata, f.name)
            for f in fields(self.metadata)
            if f.name != "fetch_from"
        }
        for key in ("date", "mail_date", "unix_date"):
            if metadata[key] is not None:
                metadata[key] = metadata[key].isoformat()
        result["metadata"] = metadata
        return result

    def __str__(self) -> str:
        return self.mail.format()
