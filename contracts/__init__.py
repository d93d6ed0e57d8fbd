"""
Postbox Contract Index
======================

AUTHORITY: This file is the SINGLE authoritative entrypoint for all
Postbox contracts. Import from here, not from individual contract files.
"""

from contracts.mail_contract import (
    PRIMARY_TYPES,
    # Test Case Index
    TEST_CASES,
    AttachmentIOError,
    AuthFailedError,
    BiosecretDeniedError,
    BiosecretNotFoundError,
    ConnectionFailedError,
    ConnectionStatus,
    ConnectTimeoutError,
    DeliveryResult,
    FetchFailedError,
    HeaderRecord,
    InvalidAddressError,
    InvalidCriterionError,
    # Contracts (Protocols)
    MailboxTransport,
    MailBuildContract,
    MailDeliveryContract,
    MailFlag,
    MalformedStructureError,
    MimePart,
    # Domain Types
    MimeTypeCode,
    NotConnectedError,
    # Error Types
    PostboxError,
    SearchCriterion,
    SendError,
    SendTimeoutError,
    TransferEncoding,
    UnsupportedEncodingError,
)

__all__ = [
    # Domain Types
    "MimeTypeCode",
    "PRIMARY_TYPES",
    "TransferEncoding",
    "SearchCriterion",
    "MailFlag",
    "MimePart",
    "HeaderRecord",
    "DeliveryResult",
    "ConnectionStatus",
    # Error Types
    "PostboxError",
    "InvalidAddressError",
    "InvalidCriterionError",
    "BiosecretDeniedError",
    "BiosecretNotFoundError",
    "ConnectionFailedError",
    "ConnectTimeoutError",
    "AuthFailedError",
    "NotConnectedError",
    "FetchFailedError",
    "MalformedStructureError",
    "UnsupportedEncodingError",
    "AttachmentIOError",
    "SendError",
    "SendTimeoutError",
    # Contracts
    "MailboxTransport",
    "MailBuildContract",
    "MailDeliveryContract",
    # Test Traceability
    "TEST_CASES",
    # Functions
    "audit_contract_coverage",
]


def audit_contract_coverage() -> dict:
    """
    Audit which contract clauses have test coverage.

    Returns dict with:
    - covered: clauses with at least one test
    - uncovered: clauses with no tests
    - test_count: total tests defined
    """
    covered_clauses = set()
    for test_info in TEST_CASES.values():
        for clause in test_info.get("enforces", []):
            covered_clauses.add(clause)

    all_clauses = set()

    # Value clauses
    all_clauses.update(
        [
            "POST-ADDRESS-01",
            "POST-ADDRESS-02",
            "POST-ADDRESS-03",
            "ERRORS: INVALID_ADDRESS",
            "POST-ATTACHMENT-01",
            "POST-ATTACHMENT-02",
            "ERRORS: ATTACHMENT_IO",
            "POST-MAIL-01",
            "POST-MAIL-02",
        ]
    )

    # Mailbox clauses
    all_clauses.update(
        [
            "PRE-MAILBOX-01",
            "POST-MAILBOX-01",
            "POST-MAILBOX-02",
            "POST-MAILBOX-03",
            "POST-MAILBOX-04",
            "POST-MAILBOX-05",
            "INV-MAILBOX-01",
            "INV-MAILBOX-02",
            "ERRORS: NOT_CONNECTED",
            "ERRORS: FETCH_FAILED",
            "ERRORS: INVALID_CRITERION",
        ]
    )

    # Build clauses
    all_clauses.update(
        [
            "PRE-BUILD-01",
            "POST-BUILD-01",
            "POST-BUILD-02",
            "POST-BUILD-03",
            "POST-BUILD-04",
            "POST-BUILD-05",
            "INV-BUILD-01",
            "INV-BUILD-02",
            "ERRORS: MALFORMED_STRUCTURE",
            "ERRORS: UNSUPPORTED_ENCODING",
        ]
    )

    # Send clauses
    all_clauses.update(
        [
            "PRE-SEND-01",
            "PRE-SEND-02",
            "PRE-SEND-03",
            "POST-SEND-01",
            "INV-SEND-01",
            "INV-SEND-02",
            "ERRORS: SEND_FAILED",
            "ERRORS: SEND_TIMEOUT",
        ]
    )

    # Global invariants
    all_clauses.update(
        [
            "INV-GLOBAL-01",
            "INV-GLOBAL-02",
            "INV-GLOBAL-03",
            "INV-GLOBAL-04",
            "INV-GLOBAL-05",
        ]
    )

    uncovered = all_clauses - covered_clauses

    return {
        "covered": sorted(covered_clauses),
        "uncovered": sorted(uncovered),
        "test_count": len(TEST_CASES),
        "coverage_pct": round(len(covered_clauses) / len(all_clauses) * 100, 1),
    }
