"""Shared fixtures."""

import pytest

from tests.fakes import FakeMailbox, header, text_part


@pytest.fixture
def simple_message():
    """Single-part text/plain message."""
    return header(), text_part(params={"charset": "utf-8"}), {"1": b"Hello there"}


@pytest.fixture
def fake_mailbox(simple_message):
    return FakeMailbox({1: simple_message})
