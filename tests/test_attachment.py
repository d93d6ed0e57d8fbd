"""
Attachment Tests
================

CL12-E TRACEABILITY: Every test cites specific contract clause IDs.
"""

import base64

import pytest

from contracts import AttachmentIOError
from src.postbox.attachment import Attachment


@pytest.fixture
def report_file(tmp_path):
    """A small file on disk."""
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4 report")
    return path


class TestAttachmentLoading:
    """Tests for load_from_path."""

    def test_load_from_path(self, report_file):
        """
        Contract: Attachment
        Enforces: POST-ATTACHMENT-01
        """
        attachment = Attachment.from_file(report_file)

        assert attachment.name == "report"
        assert attachment.file_name == "report.pdf"
        assert attachment.data is None

        assert attachment.load_from_path() is attachment
        assert attachment.data == base64.b64encode(b"%PDF-1.4 report").decode("ascii")
        assert attachment.content == b"%PDF-1.4 report"

    def test_load_without_path_fails(self):
        """
        Contract: Attachment
        Enforces: ERRORS: ATTACHMENT_IO
        """
        attachment = Attachment("report", file_name="report.pdf")

        with pytest.raises(AttachmentIOError):
            attachment.load_from_path()

    def test_load_missing_file_fails(self, tmp_path):
        """
        Contract: Attachment
        Enforces: ERRORS: ATTACHMENT_IO
        """
        attachment = Attachment("ghost", file_name="ghost.txt", path=tmp_path)

        with pytest.raises(AttachmentIOError):
            attachment.load_from_path()

    def test_load_twice_rejected(self, report_file):
        attachment = Attachment.from_file(report_file).load_from_path()

        with pytest.raises(ValueError):
            attachment.load_from_path()

    def test_path_exists(self, report_file, tmp_path):
        assert Attachment.from_file(report_file).path_exists() is True
        assert Attachment("x", path=tmp_path / "missing").path_exists() is False
        assert Attachment("x").path_exists() is False


class TestAttachmentSaving:
    """Tests for save."""

    def test_save_writes_decoded_payload(self, tmp_path):
        """
        Contract: Attachment
        Enforces: POST-ATTACHMENT-02
        """
        attachment = Attachment.from_bytes("notes", b"hello", file_name="notes.txt", path=tmp_path)

        written = attachment.save()

        assert written == 5
        assert (tmp_path / "notes.txt").read_bytes() == b"hello"

    def test_save_without_payload_fails(self, tmp_path):
        attachment = Attachment("notes", file_name="notes.txt", path=tmp_path)

        with pytest.raises(AttachmentIOError):
            attachment.save()

    def test_save_into_missing_directory_fails(self, tmp_path):
        attachment = Attachment.from_bytes(
            "notes", b"hello", file_name="notes.txt", path=tmp_path / "nope"
        )

        with pytest.raises(AttachmentIOError):
            attachment.save()

    def test_invalid_base64_payload(self):
        attachment = Attachment("bad", data="***not base64***")

        with pytest.raises(AttachmentIOError):
            attachment.content


class TestAttachmentValue:
    """Equality and representation."""

    def test_equality_covers_all_fields(self):
        first = Attachment.from_bytes("a", b"1", file_name="a.txt", type="PLAIN")
        second = Attachment.from_bytes("a", b"1", file_name="a.txt", type="PLAIN")
        third = Attachment.from_bytes("a", b"2", file_name="a.txt", type="PLAIN")

        assert first == second
        assert first != third

    def test_repr_omits_payload(self):
        """
        Contract: INV-GLOBAL-03
        Enforces: INV-GLOBAL-03
        """
        attachment = Attachment.from_bytes("secret", b"TOP SECRET CONTENT")

        assert attachment.data not in repr(attachment)
