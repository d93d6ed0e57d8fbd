"""
Postbox Mail Contract
=====================

Behavioral specification for the mail model, the mailbox boundary and the
delivery boundary.

Every public interface declares PRE/POST/INV/ERRORS clauses. Tests cite the
clause IDs they enforce (see TEST_CASES at the bottom of this file).

AUTHORITY: This file is the SINGLE authoritative source for Postbox behavior.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.postbox.mail import Mail


# =============================================================================
# DOMAIN TYPES
# =============================================================================

class MimeTypeCode(IntEnum):
    """Primary MIME type codes as reported in a body structure."""
    TEXT = 0
    MULTIPART = 1
    MESSAGE = 2
    APPLICATION = 3
    AUDIO = 4
    IMAGE = 5
    VIDEO = 6
    OTHER = 7


# Indexed by MimeTypeCode
PRIMARY_TYPES = ("TEXT", "MULTIPART", "MESSAGE", "APPLICATION", "AUDIO", "IMAGE", "VIDEO", "OTHER")


class TransferEncoding(IntEnum):
    """Content-Transfer-Encoding codes."""
    SEVEN_BIT = 0
    EIGHT_BIT = 1
    BINARY = 2
    BASE64 = 3
    QUOTED_PRINTABLE = 4
    OTHER = 5


class SearchCriterion(str, Enum):
    """Mailbox search tokens accepted by Inbox and the mailbox boundary."""
    ALL = "ALL"
    ANSWERED = "ANSWERED"
    BCC = "BCC"
    BEFORE = "BEFORE"
    BODY = "BODY"
    CC = "CC"
    DELETED = "DELETED"
    FLAGGED = "FLAGGED"
    FROM = "FROM"
    KEYWORD = "KEYWORD"
    NEW = "NEW"
    OLD = "OLD"
    ON = "ON"
    RECENT = "RECENT"
    SEEN = "SEEN"
    SINCE = "SINCE"
    SUBJECT = "SUBJECT"
    TEXT = "TEXT"
    TO = "TO"
    UNANSWERED = "UNANSWERED"
    UNDELETED = "UNDELETED"
    UNFLAGGED = "UNFLAGGED"
    UNKEYWORD = "UNKEYWORD"
    UNSEEN = "UNSEEN"


class MailFlag(str, Enum):
    """System flags the Message Manager may set or clear."""
    SEEN = "\\Seen"
    FLAGGED = "\\Flagged"
    DELETED = "\\Deleted"
    ANSWERED = "\\Answered"
    DRAFT = "\\Draft"


@dataclass(frozen=True)
class MimePart:
    """One node of a message body structure."""
    type_code: int
    subtype: str
    encoding: int = TransferEncoding.SEVEN_BIT
    params: dict[str, str] = field(default_factory=dict)
    disposition: str | None = None
    disposition_params: dict[str, str] = field(default_factory=dict)
    content_id: str | None = None
    children: tuple[MimePart, ...] = ()

    @property
    def is_multipart(self) -> bool:
        return self.type_code == MimeTypeCode.MULTIPART


@dataclass(frozen=True)
class HeaderRecord:
    """Header metadata of one message, as returned by one mailbox fetch."""
    from_address: str
    to_address: str
    subject: str = ""
    cc_address: str | None = None
    bcc_address: str | None = None
    reply_to_address: str | None = None
    sender_address: str | None = None
    return_path: str = ""
    date: datetime | None = None
    mail_date: datetime | None = None
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
    fetch_from: Any = None


@dataclass(frozen=True)
class DeliveryResult:
    """Acknowledgment of one accepted submission."""
    accepted: list[str]
    refused: dict[str, Any]
    message_id: str | None = None


@dataclass(frozen=True)
class ConnectionStatus:
    """Current mailbox connection state."""
    connected: bool
    server: str
    folder: str
    uptime_seconds: int


# =============================================================================
# ERROR TYPES
# =============================================================================

class PostboxError(Exception):
    """Base error for all Postbox operations."""
    code: str = "POSTBOX_ERROR"


class InvalidAddressError(PostboxError, ValueError):
    """
    ERRORS-ADDRESS-01: Email address fails syntactic validation.

    RECOVERY: Caller must correct the address. Never swallowed by the builder.
    """
    code = "INVALID_ADDRESS"


class InvalidCriterionError(PostboxError, ValueError):
    """
    ERRORS-INBOX-01: Search token is not one of the recognized criteria.

    RECOVERY: Caller must pass a SearchCriterion token (case-sensitive).
    """
    code = "INVALID_CRITERION"


class BiosecretDeniedError(PostboxError):
    """
    ERRORS-STARTUP-01: User cancelled biometric prompt.

    RECOVERY: Fatal. Restart to retry.
    """
    code = "BIOSECRET_DENIED"


class BiosecretNotFoundError(PostboxError):
    """
    ERRORS-STARTUP-02: No credentials stored under expected keychain key.

    RECOVERY: Fatal. Store credentials via biosecret before retry.
    """
    code = "BIOSECRET_NOT_FOUND"


class ConnectionFailedError(PostboxError):
    """
    ERRORS-MAILBOX-01: Network unreachable or host not found.

    RECOVERY: Check network connectivity and retry.
    """
    code = "CONNECTION_FAILED"


class ConnectTimeoutError(ConnectionFailedError):
    """
    ERRORS-MAILBOX-02: Mailbox server did not answer within the configured timeout.
    """
    code = "CONNECT_TIMEOUT"


class AuthFailedError(PostboxError):
    """
    ERRORS-MAILBOX-03: Credentials rejected by mail server.

    RECOVERY: Fatal. Update stored credentials.
    """
    code = "AUTH_FAILED"


class NotConnectedError(PostboxError):
    """
    ERRORS-MAILBOX-04: Operation attempted without an open mailbox session.
    """
    code = "NOT_CONNECTED"


class FetchFailedError(PostboxError):
    """
    ERRORS-MAILBOX-05: Server rejected a search, fetch or store command.

    RECOVERY: Aborts the current message; batch retrieval continues.
    """
    code = "FETCH_FAILED"


class MalformedStructureError(PostboxError):
    """
    ERRORS-BUILD-01: Body structure is unparseable or nested too deeply.
    """
    code = "MALFORMED_STRUCTURE"


class UnsupportedEncodingError(PostboxError):
    """
    ERRORS-BUILD-02: Transfer-encoding code outside the handled set, strict mode only.
    """
    code = "UNSUPPORTED_ENCODING"


class AttachmentIOError(PostboxError, OSError):
    """
    ERRORS-ATTACHMENT-01: Attachment payload cannot be loaded or saved.
    """
    code = "ATTACHMENT_IO"


class SendError(PostboxError):
    """
    ERRORS-SEND-01: Delivery rejected or transport failed.

    RECOVERY: Caller decides whether to retry; no retries happen here.
    """
    code = "SEND_FAILED"


class SendTimeoutError(SendError):
    """
    ERRORS-SEND-02: SMTP server did not answer within the configured timeout.
    """
    code = "SEND_TIMEOUT"


# =============================================================================
# BOUNDARY CONTRACTS
# =============================================================================

@runtime_checkable
class MailboxTransport(Protocol):
    """
    Mailbox access capability consumed by the builder, Inbox and MailManager.

    PRE-MAILBOX-01: A session is open and a folder selected
    POST-MAILBOX-01: fetch_header returns one HeaderRecord per call
    POST-MAILBOX-02: fetch_structure returns the MimePart tree of the message
    POST-MAILBOX-03: fetch_body returns the raw (still transfer-encoded) bytes
                     of the part at the dotted part path
    POST-MAILBOX-04: search returns matching identities in ascending order
    POST-MAILBOX-05: delete marks a message; only expunge removes it, after
                     which search no longer returns its identity
    INV-MAILBOX-01 (Read-Only Fetch): fetch_* MUST NOT change message flags
    INV-MAILBOX-02 (Serialized Use): one caller at a time per session

    ERRORS:
    - NOT_CONNECTED: no open session
    - FETCH_FAILED: server rejected the command
    - INVALID_CRITERION: unknown search token
    """

    def search(self, criterion: str, value: Any = None) -> list[int]:
        ...

    def fetch_header(self, identity: int) -> HeaderRecord:
        ...

    def fetch_structure(self, identity: int) -> MimePart:
        ...

    def fetch_body(self, identity: int, part_path: str) -> bytes:
        ...

    def set_flag(self, identity: int, flag: MailFlag) -> None:
        ...

    def clear_flag(self, identity: int, flag: MailFlag) -> None:
        ...

    def delete(self, identity: int) -> None:
        ...

    def expunge(self) -> None:
        ...


@runtime_checkable
class MailBuildContract(Protocol):
    """
    Builds a FullMail from one message identity.

    PRE-BUILD-01: mailbox satisfies MailboxTransport
    POST-BUILD-01: header fetched exactly once
    POST-BUILD-02: text/html bodies are the decoded bytes of the FIRST matching
                   leaf in depth-first, left-to-right order
    POST-BUILD-03: body fetched at the computed dotted part path ("1" for a
                   single-part message)
    POST-BUILD-04: missing text or html body yields ""
    POST-BUILD-05: attachments come from immediate children with disposition
                   ATTACHMENT, fetched at index + 1
    INV-BUILD-01 (Depth Bound): nesting beyond MAX_DEPTH fails
    INV-BUILD-02 (Snapshot): the result is not refreshed by later flag changes

    ERRORS:
    - INVALID_ADDRESS: a header address fails validation
    - MALFORMED_STRUCTURE: structure too deep or unusable
    - UNSUPPORTED_ENCODING: unknown transfer encoding, strict mode only
    """

    def build(self) -> Any:
        ...


@runtime_checkable
class MailDeliveryContract(Protocol):
    """
    Delivery capability.

    PRE-SEND-01: mail.from_ is set
    PRE-SEND-02: mail.to is non-empty
    PRE-SEND-03: every attachment has data or an existing path

    POST-SEND-01: Returns DeliveryResult on acceptance
    INV-SEND-01 (No Leak): per-send envelope state is cleared after every
                 send, successful or not
    INV-SEND-02 (No Retry): a failed send is reported, never retried

    ERRORS:
    - SEND_FAILED: precondition violated or server rejected the message
    - SEND_TIMEOUT: server stalled past the configured timeout
    """

    def send(self, mail: Mail) -> DeliveryResult:
        ...


# =============================================================================
# VALUE CONTRACTS
# =============================================================================

"""
Address
-------
POST-ADDRESS-01: parse("Name <email>") yields name and email, both trimmed
POST-ADDRESS-02: parse("email") yields an empty name
POST-ADDRESS-03: format() is "{name} <{email}>", leading space kept when the
                 name is empty
ERRORS: INVALID_ADDRESS

Attachment
----------
POST-ATTACHMENT-01: load_from_path stores the base64 of the file contents
POST-ATTACHMENT-02: save writes the decoded payload to path/file_name
ERRORS: ATTACHMENT_IO (path unset, unreadable, undecodable)

Mail
----
POST-MAIL-01: get_attachment looks attachments up by name
POST-MAIL-02: to_dict keys are from, to, cc, bcc, subject, text, attachments
"""


# =============================================================================
# GLOBAL INVARIANTS
# =============================================================================

"""
INV-GLOBAL-01 (Validated Addresses): No Address exists with an invalid email.

INV-GLOBAL-02 (Immutable Messages): Mail and FullMail are values; updates are
             copies.

INV-GLOBAL-03 (No Content Logging): Bodies, attachment payloads and
             credentials MUST NOT appear in logs.

INV-GLOBAL-04 (Credential Isolation): Credentials are held in memory only.

INV-GLOBAL-05 (Single Connection): One mailbox connection per server process.
"""


# =============================================================================
# TEST CASE INDEX
# =============================================================================

TEST_CASES = {
    "test_parse_named_address": {
        "contract": "Address",
        "enforces": ["POST-ADDRESS-01"],
    },
    "test_parse_bare_address": {
        "contract": "Address",
        "enforces": ["POST-ADDRESS-02"],
    },
    "test_parse_invalid_address": {
        "contract": "Address",
        "enforces": ["ERRORS: INVALID_ADDRESS", "INV-GLOBAL-01"],
    },
    "test_format_keeps_leading_space": {
        "contract": "Address",
        "enforces": ["POST-ADDRESS-03"],
    },
    "test_load_without_path_fails": {
        "contract": "Attachment",
        "enforces": ["ERRORS: ATTACHMENT_IO"],
    },
    "test_with_methods_return_copies": {
        "contract": "Mail",
        "enforces": ["INV-GLOBAL-02"],
    },
    "test_header_fetched_once": {
        "contract": "MailBuildContract",
        "enforces": ["POST-BUILD-01"],
    },
    "test_first_match_wins": {
        "contract": "MailBuildContract",
        "enforces": ["POST-BUILD-02"],
    },
    "test_nested_part_path": {
        "contract": "MailBuildContract",
        "enforces": ["POST-BUILD-03"],
    },
    "test_missing_bodies_are_empty": {
        "contract": "MailBuildContract",
        "enforces": ["POST-BUILD-04"],
    },
    "test_attachments_from_immediate_children": {
        "contract": "MailBuildContract",
        "enforces": ["POST-BUILD-05"],
    },
    "test_depth_limit": {
        "contract": "MailBuildContract",
        "enforces": ["INV-BUILD-01", "ERRORS: MALFORMED_STRUCTURE"],
    },
    "test_strict_unknown_encoding": {
        "contract": "MailBuildContract",
        "enforces": ["ERRORS: UNSUPPORTED_ENCODING"],
    },
    "test_manager_does_not_refresh_snapshot": {
        "contract": "MailBuildContract",
        "enforces": ["INV-BUILD-02"],
    },
    "test_fetch_body_uses_peek": {
        "contract": "MailboxTransport",
        "enforces": ["INV-MAILBOX-01", "POST-MAILBOX-03"],
        "adversarial": True,
    },
    "test_invalid_criterion": {
        "contract": "MailboxTransport",
        "enforces": ["ERRORS: INVALID_CRITERION"],
    },
    "test_delete_then_expunge": {
        "contract": "MailboxTransport",
        "enforces": ["POST-MAILBOX-05"],
    },
    "test_send_requires_sender": {
        "contract": "MailDeliveryContract",
        "enforces": ["PRE-SEND-01", "ERRORS: SEND_FAILED"],
    },
    "test_send_requires_recipients": {
        "contract": "MailDeliveryContract",
        "enforces": ["PRE-SEND-02"],
    },
    "test_send_unresolvable_attachment": {
        "contract": "MailDeliveryContract",
        "enforces": ["PRE-SEND-03"],
    },
    "test_send_success": {
        "contract": "MailDeliveryContract",
        "enforces": ["POST-SEND-01"],
    },
    "test_envelope_reset_after_failure": {
        "contract": "MailDeliveryContract",
        "enforces": ["INV-SEND-01", "INV-SEND-02"],
        "adversarial": True,
    },
    "test_no_body_logging": {
        "contract": "INV-GLOBAL-03",
        "enforces": ["INV-GLOBAL-03"],
        "adversarial": True,
    },
    "test_search_sorted": {
        "contract": "MailboxTransport",
        "enforces": ["POST-MAILBOX-04"],
    },
    "test_fetch_header": {
        "contract": "MailboxTransport",
        "enforces": ["POST-MAILBOX-01"],
    },
    "test_fetch_structure": {
        "contract": "MailboxTransport",
        "enforces": ["POST-MAILBOX-02"],
    },
    "test_not_connected": {
        "contract": "MailboxTransport",
        "enforces": ["PRE-MAILBOX-01", "ERRORS: NOT_CONNECTED"],
    },
    "test_search_failure": {
        "contract": "MailboxTransport",
        "enforces": ["ERRORS: FETCH_FAILED"],
    },
    "test_load_from_path": {
        "contract": "Attachment",
        "enforces": ["POST-ATTACHMENT-01"],
    },
    "test_save_writes_decoded_payload": {
        "contract": "Attachment",
        "enforces": ["POST-ATTACHMENT-02"],
    },
    "test_get_attachment_by_name": {
        "contract": "Mail",
        "enforces": ["POST-MAIL-01"],
    },
    "test_to_dict": {
        "contract": "Mail",
        "enforces": ["POST-MAIL-02"],
    },
    "test_send_timeout": {
        "contract": "MailDeliveryContract",
        "enforces": ["ERRORS: SEND_TIMEOUT"],
    },
    "test_startup_credentials_memory_only": {
        "contract": "INV-GLOBAL-04",
        "enforces": ["INV-GLOBAL-04"],
        "adversarial": True,
    },
    "test_single_connection": {
        "contract": "INV-GLOBAL-05",
        "enforces": ["INV-GLOBAL-05"],
    },
}
