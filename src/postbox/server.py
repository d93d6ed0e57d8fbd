"""
Postbox MCP Server
==================

MCP server exposing mailbox retrieval, flag management and delivery as tools.

INVARIANTS ENFORCED:
- INV-GLOBAL-03: No logging of message bodies, attachments or credentials
- INV-GLOBAL-05: Single mailbox connection per process
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from contracts import (
    ConnectionStatus,
    DeliveryResult,
    NotConnectedError,
    PostboxError,
)
from src.postbox.address import Bare
from src.postbox.credentials import Credentials
from src.postbox.imap_client import MailboxIMAPClient
from src.postbox.inbox import Inbox
from src.postbox.mail import MailDraft
from src.postbox.mailer import SmtpMailer
from src.postbox.manager import MailManager

# Configure logging to NEVER include message content (INV-GLOBAL-03)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("postbox")

MARK_ACTIONS = ("seen", "unseen", "flag", "unflag", "delete")


class PostboxMCPServer:
    """Postbox MCP Server - mail retrieval and delivery for AI agents."""

    def __init__(self) -> None:
        self._client: MailboxIMAPClient | None = None
        self._mailer: SmtpMailer | None = None
        self._server = Server("postbox")
        self._setup_tools()

    def _setup_tools(self) -> None:
        """Register MCP tools."""

        @self._server.list_tools()
        async def list_tools() -> list[Tool]:
            return [
                Tool(
                    name="mail_search",
                    description="Search the mailbox and return the matching messages",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "criterion": {
                                "type": "string",
                                "description": "Search token, e.g. ALL, UNSEEN, FROM",
                                "default": "ALL",
                            },
                            "value": {
                                "type": "string",
                                "description": "Argument for tokens that take one (FROM, SINCE, ...)",
                            },
                            "limit": {
                                "type": "integer",
                                "description": "Maximum messages to return (1-100)",
                                "minimum": 1,
                                "maximum": 100,
                            },
                        },
                        "required": ["limit"],
                    },
                ),
                Tool(
                    name="mail_get",
                    description="Fetch one message by UID",
                    inputSchema={
                        "type": "object",
                        "properties": {"uid": {"type": "integer"}},
                        "required": ["uid"],
                    },
                ),
                Tool(
                    name="mail_mark",
                    description="Mark a message seen/unseen, flag/unflag it, or mark it deleted",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "uid": {"type": "integer"},
                            "action": {"type": "string", "enum": list(MARK_ACTIONS)},
                        },
                        "required": ["uid", "action"],
                    },
                ),
                Tool(
                    name="mail_expunge",
                    description="Permanently remove messages marked deleted",
                    inputSchema={"type": "object", "properties": {}},
                ),
                Tool(
                    name="mail_send",
                    description="Send a message over SMTP",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "from": {"type": "string"},
                            "to": {"type": "array", "items": {"type": "string"}},
                            "cc": {"type": "string"},
                            "bcc": {"type": "string"},
                            "reply_to": {"type": "string"},
                            "subject": {"type": "string"},
                            "text": {"type": "string"},
                            "html": {"type": "string"},
                        },
                        "required": ["from", "to", "subject"],
                    },
                ),
                Tool(
                    name="mail_status",
                    description="Get current mailbox connection status",
                    inputSchema={"type": "object", "properties": {}},
                ),
            ]

        @self._server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            try:
                if name == "mail_search":
                    result = self.mail_search(**arguments)
                elif name == "mail_get":
                    result = self.mail_get(**arguments)
                elif name == "mail_mark":
                    result = self.mail_mark(**arguments)
                elif name == "mail_expunge":
                    result = self.mail_expunge()
                elif name == "mail_send":
                    arguments = dict(arguments)
                    arguments["sender"] = arguments.pop("from")
                    result = self.mail_send(**arguments)
                elif name == "mail_status":
                    result = self.mail_status()
                else:
                    return [TextContent(type="text", text=f"Unknown tool: {name}")]

                return [TextContent(type="text", text=self._serialize_result(result))]

            except (PostboxError, ValueError) as e:
                return [TextContent(type="text", text=f"Error: {e.__class__.__name__}: {e}")]

    def connect(self, credentials: Credentials) -> None:
        """
        Open the mailbox connection and prepare the mailer.

        INV-GLOBAL-05: Single connection per process
        """
        if self._client is not None:
            raise RuntimeError("Connection already established (INV-GLOBAL-05)")

        client = MailboxIMAPClient()
        client.connect(credentials)
        self._client = client
        self._mailer = SmtpMailer(credentials)
        logger.info("Connected to mail server")  # No credentials logged (INV-GLOBAL-03)

    def disconnect(self) -> None:
        """Disconnect and clear clients."""
        if self._mailer:
            self._mailer.disconnect()
            self._mailer = None
        if self._client:
            self._client.disconnect()
            self._client = None
            logger.info("Disconnected from mail server")

    def _require_client(self) -> MailboxIMAPClient:
        """Ensure client is connected."""
        if self._client is None or not self._client.connected:
            raise NotConnectedError("Not connected to mail server")
        return self._client

    def mail_search(self, *, limit: int, criterion: str = "ALL", value: str | None = None) -> dict:
        client = self._require_client()
        # Log operation but NEVER log message content (INV-GLOBAL-03)
        logger.info(f"Searching {criterion} with limit={limit}")
        result = Inbox(client, criterion).get_mails(limit=limit, value=value)
        return {
            "messages": [mail.to_dict() for mail in result.mails],
            "errors": {
                str(identity): f"{error.__class__.__name__}: {error}"
                for identity, error in result.errors.items()
            },
        }

    def mail_get(self, *, uid: int) -> dict:
        client = self._require_client()
        logger.info(f"Fetching message {uid}")
        full = Inbox(client).get_mail(uid)
        result = full.to_dict()
        result["html"] = full.mail.html
        return result

    def mail_mark(self, *, uid: int, action: str) -> dict:
        client = self._require_client()
        manager = MailManager(client, uid)
        operations = {
            "seen": manager.mark_seen,
            "unseen": manager.mark_unseen,
            "flag": manager.flag,
            "unflag": manager.unflag,
            "delete": manager.delete,
        }
        if action not in operations:
            raise ValueError(f"Unknown action: {action}")

        logger.info(f"Applying {action} to message {uid}")
        operations[action]()
        return {"uid": uid, "action": action}

    def mail_expunge(self) -> dict:
        client = self._require_client()
        client.expunge()
        logger.info("Expunged deleted messages")
        return {"expunged": True}

    def mail_send(
        self,
        *,
        sender: str,
        to: list[str],
        subject: str,
        text: str = "",
        html: str = "",
        cc: str | None = None,
        bcc: str | None = None,
        reply_to: str | None = None,
    ) -> DeliveryResult:
        if self._mailer is None:
            raise NotConnectedError("Not connected to mail server")

        draft = MailDraft().sender(sender).to(Bare(to)).subject(subject).text(text).html(html)
        if cc:
            draft.cc(cc)
        if bcc:
            draft.bcc(bcc)
        if reply_to:
            draft.reply_to(reply_to)

        logger.info(f"Sending message to {len(to)} recipient(s)")
        return self._mailer.send(draft.build())

    def mail_status(self) -> ConnectionStatus:
        """Always succeeds; honest about connection state."""
        if self._client is None:
            return ConnectionStatus(
                connected=False,
                server="",
                folder="",
                uptime_seconds=0,
            )
        return self._client.get_status()

    def _serialize_result(self, result: Any) -> str:
        """Serialize result to JSON string."""

        def default_serializer(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return asdict(obj)
            if isinstance(obj, datetime):
                return obj.isoformat()
            raise TypeError(f"Cannot serialize {type(obj)}")

        return json.dumps(result, default=default_serializer, indent=2)

    async def run(self) -> None:
        """Run the MCP server."""
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(
                read_stream, write_stream, self._server.create_initialization_options()
            )


# Singleton for process lifetime
_server_instance: PostboxMCPServer | None = None


def get_server() -> PostboxMCPServer:
    """Get or create the server singleton."""
    global _server_instance
    if _server_instance is None:
        _server_instance = PostboxMCPServer()
    return _server_instance


def create_server() -> PostboxMCPServer:
    """Create a new server instance (for testing)."""
    return PostboxMCPServer()
