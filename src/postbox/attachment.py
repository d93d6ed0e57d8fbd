"""
Attachments
===========

A named payload, held as base64 text, with optional filesystem backing.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path

from contracts import AttachmentIOError


class Attachment:
    """
    Email attachment.

    name, file_name and path may be changed after construction; the payload is
    set once, either at construction or by load_from_path().
    """

    def __init__(
        self,
        name: str,
        file_name: str = "",
        type: str | None = None,
        id: str | None = None,
        data: str | None = None,
        path: str | Path | None = None,
    ) -> None:
        self.name = name
        self.file_name = file_name
        self.type = type
        self.id = id
        self._data = data
        self.path = str(path) if path is not None else None

    @classmethod
    def from_file(cls, file_path: str | Path) -> Attachment:
        """Attachment backed by an existing file; the payload is loaded lazily."""
        file_path = Path(file_path)
        return cls(name=file_path.stem, file_name=file_path.name, path=file_path.parent)

    @classmethod
    def from_bytes(cls, name: str, content: bytes, **kwargs) -> Attachment:
        return cls(name, data=base64.b64encode(content).decode("ascii"), **kwargs)

    @property
    def data(self) -> str | None:
        """Base64 payload, or None when not loaded."""
        return self._data

    @property
    def content(self) -> bytes | None:
        """Decoded payload."""
        if self._data is None:
            return None
        try:
            return base64.b64decode(self._data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AttachmentIOError(f"Attachment {self.name!r} holds invalid base64") from e

    @property
    def file_path(self) -> Path:
        if not self.path:
            raise AttachmentIOError(f"No directory set for attachment {self.name!r}")
        return Path(self.path) / self.file_name

    def path_exists(self) -> bool:
        if not self.path:
            return False
        return Path(self.path).exists()

    def load_from_path(self) -> Attachment:
        """
        Read path/file_name and store its base64 encoding.

        POST-ATTACHMENT-01
        """
        if self._data is not None:
            raise ValueError(f"Payload of attachment {self.name!r} is already set")

        file_path = self.file_path
        try:
            contents = file_path.read_bytes()
        except OSError as e:
            raise AttachmentIOError(f"Cannot read attachment file {file_path}: {e}") from e

        self._data = base64.b64encode(contents).decode("ascii")
        return self

    def save(self) -> int:
        """
        Write the decoded payload to path/file_name; returns bytes written.

        POST-ATTACHMENT-02
        """
        file_path = self.file_path
        content = self.content
        if content is None:
            raise AttachmentIOError(f"Attachment {self.name!r} has no payload to save")

        try:
            return file_path.write_bytes(content)
        except OSError as e:
            raise AttachmentIOError(f"Cannot write attachment file {file_path}: {e}") from e

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Attachment):
            return NotImplemented
        return (
            self.name == other.name
            and self.file_name == other.file_name
            and self.type == other.type
            and self.id == other.id
            and self._data == other._data
            and self.path == other.path
        )

    def __repr__(self) -> str:
        # Payload omitted (INV-GLOBAL-03)
        size = len(self._data) if self._data is not None else 0
        return (
            f"Attachment(name={self.name!r}, file_name={self.file_name!r}, "
            f"type={self.type!r}, id={self.id!r}, path={self.path!r}, data=<{size} chars>)"
        )
