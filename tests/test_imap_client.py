"""
IMAP Mailbox Client Tests
=========================

CL12-E TRACEABILITY: Every test cites specific contract clause IDs.
"""

import socket
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from imapclient.response_types import Address as EnvelopeAddress
from imapclient.response_types import BodyData, Envelope

from contracts import (
    AuthFailedError,
    ConnectionFailedError,
    ConnectTimeoutError,
    FetchFailedError,
    InvalidCriterionError,
    MailFlag,
    MalformedStructureError,
    MimeTypeCode,
    NotConnectedError,
    TransferEncoding,
)
from src.postbox.credentials import Credentials
from src.postbox.imap_client import MailboxIMAPClient, to_mime_part


@pytest.fixture
def mock_credentials():
    """Valid test credentials."""
    return Credentials(
        username="test@example.com",
        password="secret123",
        server="imap.example.com",
    )


@pytest.fixture
def mock_imap_client():
    """Mock IMAPClient for testing without real IMAP server."""
    with patch("src.postbox.imap_client.IMAPClient") as mock:
        client = MagicMock()
        mock.return_value = client
        client.search.return_value = [300, 100, 200]
        yield mock


@pytest.fixture
def connected_client(mock_imap_client, mock_credentials):
    client = MailboxIMAPClient()
    client.connect(mock_credentials)
    return client


@pytest.fixture
def sample_envelope():
    return Envelope(
        datetime(2026, 1, 13, 10, 0),
        b"=?utf-8?q?Caf=C3=A9?=",
        (EnvelopeAddress(b"Sender", None, b"sender", b"example.com"),),
        (EnvelopeAddress(b"Sender", None, b"sender", b"example.com"),),
        None,
        (
            EnvelopeAddress(None, None, b"a", b"x.com"),
            EnvelopeAddress(b"Bob", None, b"b", b"x.com"),
        ),
        (EnvelopeAddress(None, None, b"c", b"x.com"),),
        None,
        None,
        b"<abc123@example.com>",
    )


class TestConnection:
    """Tests for connect and disconnect."""

    def test_connect_selects_folder(self, connected_client, mock_imap_client):
        client = mock_imap_client.return_value

        mock_imap_client.assert_called_once_with(
            "imap.example.com", port=993, ssl=True, timeout=30.0
        )
        client.login.assert_called_once_with("test@example.com", "secret123")
        client.select_folder.assert_called_once_with("INBOX")

        status = connected_client.get_status()
        assert status.connected is True
        assert status.folder == "INBOX"
        assert status.server == "imap.example.com"

    def test_connect_timeout(self, mock_credentials):
        """
        Contract: MailboxTransport
        Enforces: ERRORS: CONNECT_TIMEOUT
        """
        with patch("src.postbox.imap_client.IMAPClient", side_effect=socket.timeout()):
            with pytest.raises(ConnectTimeoutError):
                MailboxIMAPClient().connect(mock_credentials)

    def test_connect_refused(self, mock_credentials):
        with patch("src.postbox.imap_client.IMAPClient", side_effect=OSError("refused")):
            with pytest.raises(ConnectionFailedError):
                MailboxIMAPClient().connect(mock_credentials)

    def test_auth_failed(self, mock_imap_client, mock_credentials):
        mock_imap_client.return_value.login.side_effect = Exception("LOGIN failed")

        client = MailboxIMAPClient()
        with pytest.raises(AuthFailedError):
            client.connect(mock_credentials)
        assert client.connected is False

    def test_not_connected(self):
        """
        Contract: MailboxTransport
        Enforces: PRE-MAILBOX-01, ERRORS: NOT_CONNECTED
        """
        with pytest.raises(NotConnectedError):
            MailboxIMAPClient().search("ALL")

    def test_disconnect(self, connected_client, mock_imap_client):
        connected_client.disconnect()

        mock_imap_client.return_value.logout.assert_called_once()
        assert connected_client.get_status().connected is False


class TestSearch:
    """Tests for search."""

    def test_search_sorted(self, connected_client):
        """
        Contract: MailboxTransport
        Enforces: POST-MAILBOX-04
        """
        assert connected_client.search("ALL") == [100, 200, 300]

    def test_search_with_value(self, connected_client, mock_imap_client):
        connected_client.search("FROM", "sender@example.com")

        mock_imap_client.return_value.search.assert_called_once_with(
            ["FROM", "sender@example.com"]
        )

    def test_invalid_criterion(self, connected_client, mock_imap_client):
        """
        Contract: MailboxTransport
        Enforces: ERRORS: INVALID_CRITERION
        """
        with pytest.raises(InvalidCriterionError):
            connected_client.search("all")
        mock_imap_client.return_value.search.assert_not_called()

    def test_search_failure(self, connected_client, mock_imap_client):
        """
        Contract: MailboxTransport
        Enforces: ERRORS: FETCH_FAILED
        """
        mock_imap_client.return_value.search.side_effect = Exception("BAD")

        with pytest.raises(FetchFailedError):
            connected_client.search("ALL")


class TestFetch:
    """Tests for header, structure and body fetches."""

    def test_fetch_header(self, connected_client, mock_imap_client, sample_envelope):
        """
        Contract: MailboxTransport
        Enforces: POST-MAILBOX-01
        """
        received = datetime(2026, 1, 13, 10, 0, 5)
        mock_imap_client.return_value.fetch.return_value = {
            100: {
                b"SEQ": 7,
                b"ENVELOPE": sample_envelope,
                b"FLAGS": (b"\\Flagged", b"\\Recent"),
                b"INTERNALDATE": received,
                b"RFC822.SIZE": 2048,
                b"BODY[HEADER.FIELDS (RETURN-PATH NEWSGROUPS FOLLOWUP-TO REFERENCES)]": (
                    b"Return-Path: <bounce@example.com>\r\n"
                    b"References: <a@example.com>\r\n <b@example.com>\r\n\r\n"
                ),
            }
        }

        record = connected_client.fetch_header(100)

        assert record.from_address == "Sender <sender@example.com>"
        assert record.to_address == "a@x.com, Bob <b@x.com>"
        assert record.cc_address == "c@x.com"
        assert record.bcc_address is None
        assert record.subject == "Café"
        assert record.message_id == "<abc123@example.com>"
        assert record.return_path == "<bounce@example.com>"
        assert record.references == "<a@example.com> <b@example.com>"
        assert record.newsgroups is None
        assert record.mail_date == received
        assert record.unseen is True
        assert record.flagged is True
        assert record.recent is True
        assert record.msg_number == 7
        assert record.uid == 100
        assert record.size == 2048

    def test_fetch_header_uses_peek(self, connected_client, mock_imap_client, sample_envelope):
        """
        Contract: MailboxTransport
        Enforces: INV-MAILBOX-01
        """
        mock_imap_client.return_value.fetch.return_value = {
            100: {b"ENVELOPE": sample_envelope, b"FLAGS": ()}
        }

        connected_client.fetch_header(100)

        items = mock_imap_client.return_value.fetch.call_args[0][1]
        assert not any(item.startswith("BODY[") for item in items)
        assert any(item.startswith("BODY.PEEK[") for item in items)

    def test_fetch_missing_message(self, connected_client, mock_imap_client):
        """
        Contract: MailboxTransport
        Enforces: ERRORS: FETCH_FAILED
        """
        mock_imap_client.return_value.fetch.return_value = {}

        with pytest.raises(FetchFailedError):
            connected_client.fetch_header(999)

    def test_fetch_body_uses_peek(self, connected_client, mock_imap_client):
        """
        Contract: MailboxTransport
        Enforces: INV-MAILBOX-01, POST-MAILBOX-03
        Adversarial: True

        Body fetches must never set \\Seen.
        """
        client = mock_imap_client.return_value
        client.fetch.return_value = {100: {b"BODY[1.2]": b"<p>hi</p>"}}

        data = connected_client.fetch_body(100, "1.2")

        assert data == b"<p>hi</p>"
        client.fetch.assert_called_once_with([100], ["BODY.PEEK[1.2]"])
        client.add_flags.assert_not_called()

    def test_fetch_structure(self, connected_client, mock_imap_client):
        """
        Contract: MailboxTransport
        Enforces: POST-MAILBOX-02
        """
        mock_imap_client.return_value.fetch.return_value = {
            100: {
                b"BODYSTRUCTURE": BodyData.create(
                    (
                        (b"text", b"plain", (b"charset", b"utf-8"), None, None, b"7bit", 5, 1),
                        (
                            b"application", b"pdf", (b"name", b"report.pdf"), b"<r1>", None,
                            b"base64", 400, None, (b"attachment", (b"filename", b"report.pdf")),
                        ),
                        b"mixed",
                        (b"boundary", b"XYZ"),
                        None,
                    )
                )
            }
        }

        structure = connected_client.fetch_structure(100)

        assert structure.type_code == MimeTypeCode.MULTIPART
        assert structure.subtype == "MIXED"
        assert structure.params == {"boundary": "XYZ"}
        text, pdf = structure.children
        assert text.subtype == "PLAIN"
        assert text.params == {"charset": "utf-8"}
        assert text.encoding == TransferEncoding.SEVEN_BIT
        assert pdf.type_code == MimeTypeCode.APPLICATION
        assert pdf.encoding == TransferEncoding.BASE64
        assert pdf.disposition == "ATTACHMENT"
        assert pdf.disposition_params == {"filename": "report.pdf"}
        assert pdf.content_id == "<r1>"


class TestStructureConversion:
    """Tests for to_mime_part."""

    def test_unknown_type_and_encoding(self):
        part = to_mime_part(BodyData.create((b"model", b"vrml", None, None, None, b"x-uuencode", 9)))

        assert part.type_code == MimeTypeCode.OTHER
        assert part.encoding == TransferEncoding.OTHER

    def test_text_disposition_index(self):
        part = to_mime_part(
            BodyData.create(
                (
                    b"text", b"plain", None, None, None, b"quoted-printable", 5, 1, None,
                    (b"attachment", (b"filename", b"notes.txt")),
                )
            )
        )

        assert part.encoding == TransferEncoding.QUOTED_PRINTABLE
        assert part.disposition == "ATTACHMENT"

    def test_truncated_structure(self):
        """
        Contract: MailBuildContract
        Enforces: ERRORS: MALFORMED_STRUCTURE
        """
        with pytest.raises(MalformedStructureError):
            to_mime_part((b"text",))


class TestFlags:
    """Tests for flag changes, deletion and expunge."""

    def test_set_and_clear_flag(self, connected_client, mock_imap_client):
        client = mock_imap_client.return_value

        connected_client.set_flag(100, MailFlag.SEEN)
        connected_client.clear_flag(100, MailFlag.FLAGGED)

        client.add_flags.assert_called_once_with([100], [b"\\Seen"])
        client.remove_flags.assert_called_once_with([100], [b"\\Flagged"])

    def test_delete_then_expunge(self, connected_client, mock_imap_client):
        """
        Contract: MailboxTransport
        Enforces: POST-MAILBOX-05
        """
        client = mock_imap_client.return_value

        connected_client.delete(100)
        client.expunge.assert_not_called()

        connected_client.expunge()
        client.delete_messages.assert_called_once_with([100])
        client.expunge.assert_called_once()

    def test_flag_failure(self, connected_client, mock_imap_client):
        mock_imap_client.return_value.add_flags.side_effect = Exception("NO")

        with pytest.raises(FetchFailedError):
            connected_client.set_flag(100, MailFlag.SEEN)
