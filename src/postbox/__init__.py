"""
Postbox
=======

Mailbox retrieval, management and SMTP delivery, with an MCP server front end.

Messages are read over IMAP into immutable Mail values, flagged or deleted
through MailManager, and sent with SmtpMailer.
"""

__version__ = "0.1.0"

from src.postbox.address import Address, Bare, Named, NamedList, resolve_recipients
from src.postbox.attachment import Attachment
from src.postbox.builder import MailBuilder
from src.postbox.credentials import Credentials, retrieve_credentials
from src.postbox.imap_client import MailboxIMAPClient
from src.postbox.inbox import FetchResult, Inbox
from src.postbox.mail import FullMail, Mail, MailboxMetadata, MailDraft
from src.postbox.mailer import SmtpMailer
from src.postbox.manager import MailManager
from src.postbox.server import PostboxMCPServer, create_server, get_server

__all__ = [
    "Address",
    "Bare",
    "Named",
    "NamedList",
    "resolve_recipients",
    "Attachment",
    "Mail",
    "MailDraft",
    "MailboxMetadata",
    "FullMail",
    "MailBuilder",
    "Inbox",
    "FetchResult",
    "MailManager",
    "SmtpMailer",
    "MailboxIMAPClient",
    "Credentials",
    "retrieve_credentials",
    "PostboxMCPServer",
    "get_server",
    "create_server",
]
