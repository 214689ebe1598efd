"""Shared fixtures for contactcore tests."""

import itertools
from typing import Callable, List

import pytest

from contactcore.models import Config, Contact
from contactcore.services import ContactManager


def make_card(*lines: str) -> str:
    """Wrap property lines in a 3.0 card block with CRLF line endings."""
    return "\r\n".join(["BEGIN:VCARD", "VERSION:3.0", *lines, "END:VCARD"]) + "\r\n"


@pytest.fixture
def card():
    """Card builder."""
    return make_card


@pytest.fixture
def sequential_ids() -> Callable[[], str]:
    """Deterministic id factory: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def jane() -> Contact:
    return Contact(
        id="jane",
        name="Jane Doe",
        first_name="Jane",
        last_name="Doe",
        phones=[{"value": "+1 555 123 4567", "type": "mobile"}],
        emails=[{"value": "jane@example.com", "type": "home"}],
        tags=["friends"],
    )


@pytest.fixture
def jane_duplicate() -> Contact:
    return Contact(
        id="jane-2",
        name="jane  doe",
        phones=[{"value": "+15551234567", "type": "work"}],
        emails=[{"value": "jane.doe@work.example", "type": "work"}],
        organization="Acme",
        tags=["work"],
    )


@pytest.fixture
def john() -> Contact:
    return Contact(
        id="john",
        name="John Smith",
        phones=[{"value": "020 7946 0000", "type": "home"}],
    )


@pytest.fixture
def contacts(jane, jane_duplicate, john) -> List[Contact]:
    return [jane, jane_duplicate, john]


@pytest.fixture
def app_config() -> Config:
    return Config()


@pytest.fixture
def manager(app_config) -> ContactManager:
    return ContactManager(config=app_config)


@pytest.fixture
def sample_vcf(tmp_path, card):
    """A small card file on disk with one exact duplicate pair."""
    path = tmp_path / "contacts.vcf"
    path.write_text(
        card("FN:Jane Doe", "TEL;TYPE=CELL:+1 555 123 4567", "EMAIL:jane@example.com")
        + card("FN:Jane Doe", "TEL:+15551234567", "ORG:Acme")
        + card("FN:John Smith", "TEL;TYPE=HOME:020 7946 0000"),
        encoding="utf-8",
        newline="",
    )
    return path
