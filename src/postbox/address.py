"""
Addresses
=========

Validated (email, name) pairs and the recipient-list input variants.

INV-GLOBAL-01: No Address exists with an invalid email.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Union

from email_validator import EmailNotValidError, validate_email

from contracts import InvalidAddressError

_BRACKET_FORM = re.compile(r"^([^<>]*)<([^<>]+)>\s*$")


def is_valid_email(email: str) -> bool:
    """
    Syntactic RFC 5322 check; deliverability is not looked up.

    Quoted local parts and special-use domains (.local, .test, localhost) are
    accepted, since intranet and test mail carries them.
    """
    try:
        validate_email(
            email,
            check_deliverability=False,
            allow_quoted_local=True,
            globally_deliverable=False,
        )
    except EmailNotValidError:
        return False
    return True


@dataclass(frozen=True)
class Address:
    """An email address with an optional display name."""

    email: str
    name: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.email, str) or not is_valid_email(self.email):
            raise InvalidAddressError(f"Invalid email address: {self.email!r}")

    @classmethod
    def parse(cls, text: str) -> Address:
        """
        Parse "Name <email>" or a bare "email".

        POST-ADDRESS-01: bracket form yields trimmed name and email
        POST-ADDRESS-02: bare form yields an empty name
        """
        if not isinstance(text, str):
            raise InvalidAddressError(f"Invalid email address: {text!r}")

        match = _BRACKET_FORM.match(text.strip())
        if match:
            return cls(match.group(2).strip(), match.group(1).strip())
        return cls(text.strip())

    @classmethod
    def coerce(cls, value: Address | str) -> Address:
        """Return value unchanged if it is an Address, otherwise parse it."""
        if isinstance(value, Address):
            return value
        return cls.parse(value)

    def format(self) -> str:
        """
        POST-ADDRESS-03: "{name} <{email}>", leading space kept for an empty name.
        """
        return f"{self.name} <{self.email}>"

    def __str__(self) -> str:
        return self.format()


# =============================================================================
# Recipient input variants
# =============================================================================

@dataclass(frozen=True)
class Bare:
    """Plain address values: ["a@x.com", "Bob <bob@x.com>"]."""

    values: Sequence[Address | str]


@dataclass(frozen=True)
class Named:
    """A name -> email mapping: {"bob": "bob@x.com"}."""

    mapping: Mapping[str, str]


@dataclass(frozen=True)
class NamedList:
    """A sequence of name -> email mappings: [{"bob": "bob@x.com"}, ...]."""

    entries: Sequence[Mapping[str, str]]


RecipientSpec = Union[Address, str, Bare, Named, NamedList]


def resolve_recipients(spec: RecipientSpec) -> tuple[Address, ...]:
    """
    Resolve any recipient variant to addresses, preserving input order.

    Raises TypeError for anything that is not one of the variants.
    """
    if isinstance(spec, (Address, str)):
        return (Address.coerce(spec),)
    if isinstance(spec, Bare):
        return tuple(Address.coerce(value) for value in spec.values)
    if isinstance(spec, Named):
        return tuple(Address(email, name) for name, email in spec.mapping.items())
    if isinstance(spec, NamedList):
        return tuple(
            Address(email, name)
            for entry in spec.entries
            for name, email in entry.items()
        )
    raise TypeError(f"Unsupported recipient value: {type(spec).__name__}")
