"""
Inbox
=====

Criterion-validated search plus per-message and batch retrieval.

Batch policy: one message that fails to build does not abort the batch. The
failure is recorded against its identity in FetchResult.errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from contracts import MailboxTransport, PostboxError, SearchCriterion
from src.postbox.builder import MailBuilder
from src.postbox.imap_client import validate_criterion
from src.postbox.mail import FullMail

logger = logging.getLogger("postbox.inbox")


@dataclass
class FetchResult:
    """Messages built by one batch retrieval, plus the identities that failed."""

    mails: list[FullMail] = field(default_factory=list)
    errors: dict[int, PostboxError] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.errors


class Inbox:
    """Reads messages from a mailbox through MailBuilder."""

    def __init__(
        self,
        mailbox: MailboxTransport,
        criterion: str = SearchCriterion.ALL.value,
        strict: bool = False,
    ) -> None:
        self._mailbox = mailbox
        self._strict = strict
        self._criterion = validate_criterion(criterion)

    @property
    def criterion(self) -> str:
        return self._criterion.value

    @criterion.setter
    def criterion(self, criterion: str) -> None:
        self._criterion = validate_criterion(criterion)

    def search(self, value: Any = None) -> list[int]:
        return self._mailbox.search(self._criterion.value, value)

    def get_mail(self, identity: int) -> FullMail:
        return MailBuilder(self._mailbox, identity, strict=self._strict).build()

    def get_mails(self, limit: int | None = None, value: Any = None) -> FetchResult:
        """
        Build every message matching the current criterion.

        Search failures propagate. Per-message PostboxErrors are collected
        and logged by identity and class name only.
        """
        identities = self.search(value)
        if limit is not None:
            identities = identities[:limit]

        result = FetchResult()
        for identity in identities:
            try:
                result.mails.append(self.get_mail(identity))
            except PostboxError as e:
                logger.warning("Skipping message %s: %s", identity, e.__class__.__name__)
                result.errors[identity] = e

        logger.info(
            "Fetched %d message(s) for %s, %d failed",
            len(result.mails),
            self._criterion.value,
            len(result.errors),
        )
        return result
