"""
Mail Builder
============

Builds a FullMail from one message of a mailbox.

Implements MailBuildContract. The builder holds no connection lock; callers
serialize use of a mailbox session (INV-MAILBOX-02).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from contracts import HeaderRecord, MailboxTransport, MimePart
from src.postbox.address import Address, Bare, resolve_recipients
from src.postbox.attachment import Attachment
from src.postbox.mail import FullMail, Mail, MailboxMetadata
from src.postbox.mime import (
    attachment_parts,
    decode_text,
    decode_transfer,
    find_part,
)

logger = logging.getLogger("postbox.builder")

TEXT_PLAIN = "TEXT/PLAIN"
TEXT_HTML = "TEXT/HTML"


def split_addresses(address_list: str) -> list[str]:
    """
    Split a header address list on ", ".

    Display names containing ", " are split too; there is no RFC 5322
    address-list parsing here.
    """
    if not address_list:
        return []
    return [token for token in address_list.split(", ") if token.strip()]


class MailBuilder:
    """
    Build a FullMail for one message identity.

    With strict=True, an unknown transfer encoding raises
    UnsupportedEncodingError instead of passing the bytes through.
    """

    def __init__(self, mailbox: MailboxTransport, identity: int, strict: bool = False) -> None:
        self._mailbox = mailbox
        self._identity = identity
        self._strict = strict
        self._structure: MimePart | None = None

    @property
    def structure(self) -> MimePart:
        if self._structure is None:
            self._structure = self._mailbox.fetch_structure(self._identity)
        return self._structure

    def _fetch_body(self, part_path: str) -> bytes:
        return self._mailbox.fetch_body(self._identity, part_path)

    def get_text_body(self) -> str:
        return self._get_body(TEXT_PLAIN)

    def get_html_body(self) -> str:
        return self._get_body(TEXT_HTML)

    def _get_body(self, target: str) -> str:
        found = find_part(self.structure, target, self._fetch_body, self._strict)
        if found is None:
            return ""
        part, data = found
        return decode_text(part, data)

    def get_attachments(self) -> list[Attachment]:
        """POST-BUILD-05: attachments among the immediate children only."""
        attachments = []
        for part_path, part in attachment_parts(self.structure):
            data = decode_transfer(self._fetch_body(part_path), part.encoding, self._strict)
            name = part.disposition_params.get("filename") or part.params.get("name") or "unnamed"
            file_name = part.params.get("name") or part.disposition_params.get("filename") or name
            attachments.append(
                Attachment.from_bytes(
                    name,
                    data,
                    file_name=file_name,
                    type=part.subtype or None,
                    id=part.content_id,
                )
            )
        return attachments

    def build(self) -> FullMail:
        """
        POST-BUILD-01: header fetched once.
        ERRORS: INVALID_ADDRESS propagates; nothing is swallowed here.
        """
        header = self._mailbox.fetch_header(self._identity)

        mail = Mail(
            from_=Address.parse(header.from_address),
            to=_to_addresses(header.to_address),
            cc=_optional(header.cc_address),
            bcc=_optional(header.bcc_address),
            reply_to=_optional(header.reply_to_address),
            subject=header.subject or "",
            text=self.get_text_body(),
            html=self.get_html_body(),
            attachments=tuple(self.get_attachments()),
        )

        logger.debug(
            "Built message %s with %d attachment(s)", self._identity, len(mail.attachments)
        )
        return FullMail(mail=mail, metadata=_metadata(header))


def _to_addresses(address_list: str) -> tuple[Address, ...]:
    return resolve_recipients(Bare(split_addresses(address_list)))


def _optional(address_list: str | None) -> Address | None:
    # cc, bcc and reply-to hold a single address; extra entries are dropped
    tokens = split_addresses(address_list or "")
    if not tokens:
        return None
    return Address.parse(tokens[0])


def _metadata(header: HeaderRecord) -> MailboxMetadata:
    return MailboxMetadata(
        sender=header.sender_address,
        return_path=header.return_path or "",
        date=header.date,
        mail_date=header.mail_date,
        unix_date=_as_utc(header.mail_date),
        message_id=header.message_id,
        newsgroups=header.newsgroups,
        followup_to=header.followup_to,
        references=header.references,
        recent=header.recent,
        unseen=header.unseen,
        flagged=header.flagged,
        answered=header.answered,
        deleted=header.deleted,
        draft=header.draft,
        msg_number=header.msg_number,
        uid=header.uid,
        size=header.size,
        fetch_from=header.fetch_from,
    )


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
