"""Recipient resolution rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from whatsched.gateway.base import Contact

USER_SERVER = "c.us"

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def phone_address(name: str) -> str | None:
    """Return a direct address if *name* looks like a bare phone number."""
    if MIN_PHONE_DIGITS <= len(name) <= MAX_PHONE_DIGITS and name.isascii() and name.isdigit():
        return f"{name}@{USER_SERVER}"
    return None


def match_contact(name: str, contacts: Iterable[Contact]) -> str | None:
    """Find *name* among *contacts*: display name first, then address.

    Matching is exact; the first hit wins.
    """
    contacts = list(contacts)
    for contact in contacts:
        if contact.full_name and contact.full_name == name:
            return contact.address
    for contact in contacts:
        if contact.address == name:
            return contact.address
    return None
