"""
IMAP Mailbox Client
===================

MailboxTransport implementation on top of imapclient.

CONSTITUTIONAL INVARIANTS:
- INV-MAILBOX-01: Fetches use BODY.PEEK and never set \\Seen
- INV-MAILBOX-02: One caller at a time; no locking here
- INV-GLOBAL-03: No logging of message bodies, attachments or credentials
"""

from __future__ import annotations

import email
import socket
from datetime import datetime
from email.header import decode_header
from typing import TYPE_CHECKING, Any

from imapclient import IMAPClient

from contracts import (
    PRIMARY_TYPES,
    AuthFailedError,
    ConnectionFailedError,
    ConnectionStatus,
    ConnectTimeoutError,
    FetchFailedError,
    HeaderRecord,
    InvalidCriterionError,
    MailFlag,
    MalformedStructureError,
    MimePart,
    MimeTypeCode,
    NotConnectedError,
    SearchCriterion,
    TransferEncoding,
)
from src.postbox.mime import MAX_DEPTH

if TYPE_CHECKING:
    from src.postbox.credentials import Credentials

EXTRA_HEADERS = "RETURN-PATH NEWSGROUPS FOLLOWUP-TO REFERENCES"

HEADER_ITEMS = [
    "ENVELOPE",
    "FLAGS",
    "INTERNALDATE",
    "RFC822.SIZE",
    f"BODY.PEEK[HEADER.FIELDS ({EXTRA_HEADERS})]",
]

_ENCODINGS = {
    "7BIT": TransferEncoding.SEVEN_BIT,
    "8BIT": TransferEncoding.EIGHT_BIT,
    "BINARY": TransferEncoding.BINARY,
    "BASE64": TransferEncoding.BASE64,
    "QUOTED-PRINTABLE": TransferEncoding.QUOTED_PRINTABLE,
}


def validate_criterion(criterion: str) -> SearchCriterion:
    """Case-sensitive lookup of a search token."""
    try:
        return SearchCriterion(criterion)
    except ValueError as e:
        raise InvalidCriterionError(f"Invalid search criterion: {criterion!r}") from e


class MailboxIMAPClient:
    """
    IMAP session bound to one selected folder.

    Message identities are UIDs.
    """

    def __init__(self) -> None:
        self._client: IMAPClient | None = None
        self._server: str = ""
        self._folder: str = ""
        self._connected: bool = False
        self._start_time: datetime | None = None

    @property
    def connected(self) -> bool:
        """Check if connected to server."""
        return self._connected and self._client is not None

    def connect(self, credentials: Credentials) -> None:
        """
        Connect, authenticate and select the configured folder.

        ERRORS:
        - CONNECT_TIMEOUT: server did not answer within credentials.timeout
        - CONNECTION_FAILED: network unreachable or host not found
        - AUTH_FAILED: login rejected
        """
        try:
            self._client = IMAPClient(
                credentials.server,
                port=credentials.port,
                ssl=credentials.use_ssl,
                timeout=credentials.timeout,
            )
            self._server = credentials.server
        except socket.timeout as e:
            raise ConnectTimeoutError(f"Timed out connecting to {credentials.server}") from e
        except Exception as e:
            raise ConnectionFailedError(f"Failed to connect: {e}") from e

        try:
            self._client.login(credentials.username, credentials.password)
        except Exception as e:
            self._client = None
            raise AuthFailedError(f"Authentication failed: {e}") from e

        self._connected = True
        self._start_time = datetime.now()
        self.select_folder(credentials.folder)

    def disconnect(self) -> None:
        """Disconnect from server."""
        if self._client:
            try:
                self._client.logout()
            except Exception:
                pass
            finally:
                self._client = None
                self._connected = False

    def _require_connection(self) -> IMAPClient:
        """Ensure connected, raise NotConnectedError if not."""
        if not self._connected or self._client is None:
            raise NotConnectedError("Not connected to mail server")
        return self._client

    def select_folder(self, folder: str) -> None:
        client = self._require_connection()
        try:
            client.select_folder(folder)
        except Exception as e:
            raise FetchFailedError(f"Cannot select folder {folder}: {e}") from e
        self._folder = folder

    def get_status(self) -> ConnectionStatus:
        uptime = 0
        if self._start_time and self._connected:
            uptime = int((datetime.now() - self._start_time).total_seconds())

        return ConnectionStatus(
            connected=self.connected,
            server=self._server,
            folder=self._folder,
            uptime_seconds=uptime,
        )

    # -------------------------------------------------------------------------
    # MailboxTransport
    # -------------------------------------------------------------------------

    def search(self, criterion: str, value: Any = None) -> list[int]:
        """UIDs matching criterion, ascending."""
        token = validate_criterion(criterion)
        client = self._require_connection()

        criteria: list[Any] = [token.value]
        if value is not None:
            criteria.append(value)

        try:
            return sorted(client.search(criteria))
        except Exception as e:
            raise FetchFailedError(f"Search {token.value} failed: {e}") from e

    def _fetch_one(self, identity: int, items: list[str]) -> dict:
        client = self._require_connection()
        try:
            response = client.fetch([identity], items)
        except Exception as e:
            raise FetchFailedError(f"Fetch of message {identity} failed: {e}") from e

        data = response.get(identity)
        if data is None:
            raise FetchFailedError(f"Message {identity} not found")
        return data

    def fetch_header(self, identity: int) -> HeaderRecord:
        data = self._fetch_one(identity, HEADER_ITEMS)
        envelope = data.get(b"ENVELOPE")
        if envelope is None:
            raise FetchFailedError(f"No envelope returned for message {identity}")

        extra = email.message_from_bytes(_extra_headers(data))
        flags = {_text(flag) for flag in data.get(b"FLAGS", ())}

        return HeaderRecord(
            from_address=_format_addresses((envelope.from_ or ())[:1]) or "",
            to_address=_format_addresses(envelope.to) or "",
            subject=_decode_header(_text(envelope.subject)),
            cc_address=_format_addresses(envelope.cc),
            bcc_address=_format_addresses(envelope.bcc),
            reply_to_address=_format_addresses(envelope.reply_to),
            sender_address=_format_addresses(envelope.sender),
            return_path=_header_value(extra, "Return-Path") or "",
            date=envelope.date,
            mail_date=data.get(b"INTERNALDATE"),
            message_id=_text(envelope.message_id) or None,
            newsgroups=_header_value(extra, "Newsgroups"),
            followup_to=_header_value(extra, "Followup-To"),
            references=_header_value(extra, "References"),
            recent="\\Recent" in flags,
            unseen="\\Seen" not in flags,
            flagged="\\Flagged" in flags,
            answered="\\Answered" in flags,
            deleted="\\Deleted" in flags,
            draft="\\Draft" in flags,
            msg_number=data.get(b"SEQ", 0),
            uid=identity,
            size=data.get(b"RFC822.SIZE", 0),
            fetch_from=envelope.from_,
        )

    def fetch_structure(self, identity: int) -> MimePart:
        data = self._fetch_one(identity, ["BODYSTRUCTURE"])
        body = data.get(b"BODYSTRUCTURE")
        if body is None:
            raise MalformedStructureError(f"No body structure returned for message {identity}")
        return to_mime_part(body)

    def fetch_body(self, identity: int, part_path: str) -> bytes:
        """Raw bytes of one part. INV-MAILBOX-01: BODY.PEEK leaves \\Seen alone."""
        data = self._fetch_one(identity, [f"BODY.PEEK[{part_path}]"])
        return data.get(f"BODY[{part_path}]".encode(), b"") or b""

    def set_flag(self, identity: int, flag: MailFlag) -> None:
        client = self._require_connection()
        try:
            client.add_flags([identity], [flag.value.encode()])
        except Exception as e:
            raise FetchFailedError(f"Cannot set {flag.value} on {identity}: {e}") from e

    def clear_flag(self, identity: int, flag: MailFlag) -> None:
        client = self._require_connection()
        try:
            client.remove_flags([identity], [flag.value.encode()])
        except Exception as e:
            raise FetchFailedError(f"Cannot clear {flag.value} on {identity}: {e}") from e

    def delete(self, identity: int) -> None:
        """Mark for deletion; the message stays until expunge()."""
        client = self._require_connection()
        try:
            client.delete_messages([identity])
        except Exception as e:
            raise FetchFailedError(f"Cannot delete {identity}: {e}") from e

    def expunge(self) -> None:
        client = self._require_connection()
        try:
            client.expunge()
        except Exception as e:
            raise FetchFailedError(f"Expunge failed: {e}") from e


# =============================================================================
# Response conversion
# =============================================================================

def to_mime_part(body: Any, depth: int = 0) -> MimePart:
    """Convert an imapclient BODYSTRUCTURE response into a MimePart tree."""
    if depth > MAX_DEPTH:
        raise MalformedStructureError(f"Body structure nested deeper than {MAX_DEPTH} levels")

    try:
        if isinstance(body[0], list):
            disposition = body[3] if len(body) > 3 else None
            name, disposition_params = _disposition(disposition)
            return MimePart(
                type_code=MimeTypeCode.MULTIPART,
                subtype=_text(body[1]).upper(),
                params=_params(body[2]) if len(body) > 2 else {},
                disposition=name,
                disposition_params=disposition_params,
                children=tuple(to_mime_part(child, depth + 1) for child in body[0]),
            )

        type_name = _text(body[0]).upper()
        subtype = _text(body[1]).upper()
        if type_name == "TEXT":
            disposition_index = 9
        elif type_name == "MESSAGE" and subtype == "RFC822":
            disposition_index = 11
        else:
            disposition_index = 8

        disposition = body[disposition_index] if len(body) > disposition_index else None
        name, disposition_params = _disposition(disposition)
        return MimePart(
            type_code=_type_code(type_name),
            subtype=subtype,
            encoding=_ENCODINGS.get(_text(body[5]).upper(), TransferEncoding.OTHER),
            params=_params(body[2]),
            disposition=name,
            disposition_params=disposition_params,
            content_id=_text(body[3]) or None,
        )
    except (IndexError, TypeError) as e:
        raise MalformedStructureError(f"Unparseable body structure: {e}") from e


def _type_code(type_name: str) -> int:
    if type_name in PRIMARY_TYPES:
        return PRIMARY_TYPES.index(type_name)
    return MimeTypeCode.OTHER


def _disposition(value: Any) -> tuple[str | None, dict[str, str]]:
    if not isinstance(value, tuple) or not value:
        return None, {}
    params = _params(value[1]) if len(value) > 1 else {}
    return _text(value[0]).upper(), params


def _params(value: Any) -> dict[str, str]:
    """(key, value, key, value, ...) -> {key.lower(): value}; RFC 2047 values decoded."""
    if not value or not isinstance(value, (tuple, list)):
        return {}
    items = list(value)
    return {
        _text(items[i]).lower(): _decode_header(_text(items[i + 1]))
        for i in range(0, len(items) - 1, 2)
    }


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _format_addresses(addresses: Any) -> str | None:
    """Envelope addresses as "Name <mailbox@host>", joined with ", "."""
    if not addresses:
        return None

    formatted = []
    for address in addresses:
        if not address.mailbox or not address.host:
            # Group syntax markers
            continue
        addr = f"{_text(address.mailbox)}@{_text(address.host)}"
        name = _decode_header(_text(address.name))
        formatted.append(f"{name} <{addr}>" if name else addr)
    return ", ".join(formatted) or None


def _extra_headers(data: dict) -> bytes:
    for key, value in data.items():
        if isinstance(key, bytes) and key.startswith(b"BODY[HEADER.FIELDS"):
            return value or b""
    return b""


def _header_value(message: email.message.Message, name: str) -> str | None:
    value = message.get(name)
    if value is None:
        return None
    return " ".join(str(value).split())


def _decode_header(header: str) -> str:
    """Decode RFC 2047 encoded header."""
    if not header:
        return ""

    decoded_parts = []
    for part, charset in decode_header(header):
        if isinstance(part, bytes):
            try:
                decoded_parts.append(part.decode(charset or "utf-8", errors="replace"))
            except LookupError:
                decoded_parts.append(part.decode("utf-8", errors="replace"))
        else:
            decoded_parts.append(part)
    return "".join(decoded_parts)
