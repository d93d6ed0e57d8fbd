"""
MIME Walk
=========

Type naming, transfer decoding and the depth-first part search used by the
builder.
"""

from __future__ import annotations

import base64
import binascii
import logging
import quopri
from collections.abc import Callable, Iterator

from contracts import (
    PRIMARY_TYPES,
    MalformedStructureError,
    MimePart,
    TransferEncoding,
    UnsupportedEncodingError,
)

logger = logging.getLogger("postbox.mime")

MAX_DEPTH = 100

_PASS_THROUGH = {TransferEncoding.SEVEN_BIT, TransferEncoding.EIGHT_BIT, TransferEncoding.BINARY}


def mime_type(part: MimePart) -> str:
    """PRIMARY/SUBTYPE of a part; a part without subtype counts as TEXT/PLAIN."""
    if not part.subtype:
        return "TEXT/PLAIN"
    try:
        primary = PRIMARY_TYPES[int(part.type_code)]
    except (IndexError, ValueError, TypeError) as e:
        raise MalformedStructureError(f"Unknown MIME type code: {part.type_code!r}") from e
    return f"{primary}/{part.subtype.upper()}"


def decode_transfer(data: bytes, encoding: int, strict: bool = False) -> bytes:
    """
    Undo the content-transfer-encoding of a fetched part.

    Base64 and quoted-printable are decoded; 7bit, 8bit and binary pass
    through. Any other code passes through too, unless strict is set.
    """
    if encoding == TransferEncoding.BASE64:
        try:
            return base64.b64decode(data)
        except (binascii.Error, ValueError) as e:
            raise MalformedStructureError("Part is not valid base64") from e
    if encoding == TransferEncoding.QUOTED_PRINTABLE:
        return quopri.decodestring(data)
    if encoding in _PASS_THROUGH:
        return data
    if strict:
        raise UnsupportedEncodingError(f"Unsupported transfer encoding code: {encoding}")
    logger.debug("Passing through part with transfer encoding code %s", encoding)
    return data


def child_path(path: str, index: int) -> str:
    """Dotted path of the index-th (0-based) child of the part at path."""
    if path:
        return f"{path}.{index + 1}"
    return str(index + 1)


def iter_parts(part: MimePart, path: str = "", depth: int = 0) -> Iterator[tuple[str, MimePart]]:
    """
    Yield (path, part) depth-first, left to right.

    The root yields with path "" and multipart children extend the path.
    """
    if depth > MAX_DEPTH:
        raise MalformedStructureError(f"Body structure nested deeper than {MAX_DEPTH} levels")

    yield path, part
    if part.is_multipart:
        for index, child in enumerate(part.children):
            yield from iter_parts(child, child_path(path, index), depth + 1)


def find_part(
    structure: MimePart,
    target: str,
    fetch_body: Callable[[str], bytes],
    strict: bool = False,
) -> tuple[MimePart, bytes] | None:
    """
    Locate the first part of type target and fetch its decoded bytes.

    A single-part message is fetched at path "1". Matches whose decoded body
    is empty are skipped.
    """
    for path, part in iter_parts(structure):
        if mime_type(part) != target:
            continue
        data = decode_transfer(fetch_body(path or "1"), part.encoding, strict)
        if data:
            return part, data
    return None


def attachment_parts(structure: MimePart) -> Iterator[tuple[str, MimePart]]:
    """Immediate children of the root marked as attachments, with their paths."""
    for index, part in enumerate(structure.children):
        if part.disposition and part.disposition.upper() == "ATTACHMENT":
            yield str(index + 1), part


def decode_text(part: MimePart, data: bytes) -> str:
    charset = part.params.get("charset") or "utf-8"
    try:
        return data.decode(charset, errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")
