"""
Mail Model Tests
================

CL12-E TRACEABILITY: Every test cites specific contract clause IDs.
"""

from datetime import datetime, timezone

import pytest

from contracts import InvalidAddressError
from src.postbox.address import Address, Named
from src.postbox.attachment import Attachment
from src.postbox.mail import FullMail, Mail, MailboxMetadata, MailDraft


@pytest.fixture
def sample_mail():
    """A composed message with one attachment."""
    return (
        MailDraft()
        .sender("Me <me@example.com>")
        .to(Named({"bob": "bob@example.com"}))
        .cc("cc@example.com")
        .subject("Quarterly")
        .text("See attached.")
        .attach(Attachment.from_bytes("report", b"data", file_name="report.pdf"))
        .build()
    )


class TestMailValue:
    """Tests for the immutable Mail value."""

    def test_with_methods_return_copies(self, sample_mail):
        """
        Contract: Mail
        Enforces: INV-GLOBAL-02
        """
        changed = sample_mail.with_subject("Annual").with_to("amy@example.com")

        assert changed is not sample_mail
        assert sample_mail.subject == "Quarterly"
        assert sample_mail.to == (Address("bob@example.com", "bob"),)
        assert changed.subject == "Annual"
        assert changed.to == (Address("amy@example.com"),)

    def test_with_attachment_appends(self, sample_mail):
        extra = Attachment.from_bytes("log", b"x")

        changed = sample_mail.with_attachment(extra)

        assert len(sample_mail.attachments) == 1
        assert [a.name for a in changed.attachments] == ["report", "log"]

    def test_with_optional_addresses_clear(self, sample_mail):
        assert sample_mail.with_cc(None).cc is None
        assert sample_mail.with_reply_to("r@example.com").reply_to == Address("r@example.com")

    def test_with_from_validates(self, sample_mail):
        """
        Contract: Address
        Enforces: INV-GLOBAL-01
        """
        with pytest.raises(InvalidAddressError):
            sample_mail.with_from("broken")

    def test_fields_are_frozen(self, sample_mail):
        with pytest.raises(AttributeError):
            sample_mail.subject = "mutated"

    def test_get_attachment_by_name(self, sample_mail):
        """
        Contract: Mail
        Enforces: POST-MAIL-01
        """
        assert sample_mail.get_attachment("report").file_name == "report.pdf"
        assert sample_mail.get_attachment("missing") is None
        assert sample_mail.has_attachment("report") is True
        assert sample_mail.has_attachment("missing") is False

    def test_to_dict(self, sample_mail):
        """
        Contract: Mail
        Enforces: POST-MAIL-02
        """
        assert sample_mail.to_dict() == {
            "from": "Me <me@example.com>",
            "to": ["bob <bob@example.com>"],
            "cc": " <cc@example.com>",
            "bcc": None,
            "subject": "Quarterly",
            "text": "See attached.",
            "attachments": ["report"],
        }

    def test_format(self, sample_mail):
        assert sample_mail.format() == (
            "MAIL:"
            "\n FROM: Me <me@example.com>"
            "\n TO: bob <bob@example.com>"
            "\n CC:  <cc@example.com>"
            "\n BCC: "
            "\n SUBJECT: Quarterly"
            "\n MESSAGE: See attached."
            "\n ATTACHMENTS: report"
        )


class TestMailDraft:
    """Tests for the MailDraft builder."""

    def test_msg_renders_html_template(self):
        mail = MailDraft().msg("Hello").build()

        assert mail.text == "Hello"
        assert mail.html == "<p>Hello</p>"

    def test_msg_custom_template(self):
        mail = MailDraft().msg("Hi", template="<b>%s</b>").build()

        assert mail.html == "<b>Hi</b>"

    def test_add_to_appends(self):
        mail = MailDraft().to("a@example.com").add_to("b@example.com").build()

        assert [a.email for a in mail.to] == ["a@example.com", "b@example.com"]

    def test_attach_path(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("notes")

        mail = MailDraft().attachments([str(path)]).build()

        assert mail.attachments[0].name == "notes"
        assert mail.attachments[0].path_exists() is True

    def test_draft_from_existing_mail(self, sample_mail):
        copy = MailDraft(sample_mail).subject("Re: Quarterly").build()

        assert copy.subject == "Re: Quarterly"
        assert copy.to == sample_mail.to
        assert copy.attachments == sample_mail.attachments


class TestFullMail:
    """Tests for the fetched-message composition."""

    def test_to_dict_includes_metadata(self, sample_mail):
        received = datetime(2026, 1, 13, 10, 0, tzinfo=timezone.utc)
        full = FullMail(
            mail=sample_mail,
            metadata=MailboxMetadata(uid=42, mail_date=received, unseen=True, fetch_from=object()),
        )

        result = full.to_dict()

        assert result["subject"] == "Quarterly"
        assert result["metadata"]["uid"] == 42
        assert result["metadata"]["unseen"] is True
        assert result["metadata"]["mail_date"] == "2026-01-13T10:00:00+00:00"
        assert "fetch_from" not in result["metadata"]

    def test_metadata_equality_ignores_fetch_from(self):
        assert MailboxMetadata(uid=1, fetch_from="a") == MailboxMetadata(uid=1, fetch_from="b")
