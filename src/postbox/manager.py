"""
Mail Manager
============

Flag and deletion commands for one message. They act on the mailbox only; a
FullMail fetched earlier is not updated (INV-BUILD-02).
"""

from __future__ import annotations

import logging

from contracts import MailboxTransport, MailFlag

logger = logging.getLogger("postbox.manager")


class MailManager:
    def __init__(self, mailbox: MailboxTransport, identity: int) -> None:
        self._mailbox = mailbox
        self._identity = identity

    @property
    def identity(self) -> int:
        return self._identity

    def mark_seen(self) -> None:
        self._mailbox.set_flag(self._identity, MailFlag.SEEN)

    def mark_unseen(self) -> None:
        self._mailbox.clear_flag(self._identity, MailFlag.SEEN)

    def flag(self) -> None:
        self._mailbox.set_flag(self._identity, MailFlag.FLAGGED)

    def unflag(self) -> None:
        self._mailbox.clear_flag(self._identity, MailFlag.FLAGGED)

    def delete(self) -> None:
        """Mark for deletion; see expunge()."""
        self._mailbox.delete(self._identity)
        logger.info("Marked message %s for deletion", self._identity)

    def expunge(self) -> None:
        """Permanently remove every message marked for deletion in the folder."""
        self._mailbox.expunge()
        logger.info("Expunged deleted messages")
