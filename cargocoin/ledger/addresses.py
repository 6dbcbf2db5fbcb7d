"""Address and amount primitives.

Addresses are 20-byte account identifiers. The ledger only compares them
for equality, so they are kept in one canonical text form: lower-case,
``0x``-prefixed, 40 hex digits.
"""

from __future__ import annotations

import hashlib
import re
from typing import Union

from .errors import InvalidAddress, InvalidAmount

Address = str

ADDRESS_BYTES = 20
ZERO_ADDRESS: Address = "0x" + "00" * ADDRESS_BYTES

MAX_UINT256 = 2**256 - 1

_RE_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(value: Union[str, bytes, bytearray], field: str = "address") -> Address:
    """Return the canonical form of ``value`` or raise InvalidAddress.

    The zero address is a well-formed address; use ``require_address`` where
    a non-null address is required.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_BYTES:
            raise InvalidAddress(field, value)
        return "0x" + bytes(value).hex()
    if not isinstance(value, str) or not _RE_ADDRESS.match(value):
        raise InvalidAddress(field, value)
    return value.lower()


def require_address(value: Union[str, bytes, bytearray], field: str = "address") -> Address:
    """Normalize ``value`` and reject the zero address."""
    address = normalize_address(value, field)
    if address == ZERO_ADDRESS:
        raise InvalidAddress(field, value)
    return address


def is_zero_address(value: Address) -> bool:
    return value == ZERO_ADDRESS


def require_uint256(value: object, field: str = "amount") -> int:
    """Validate a uint256 amount. Zero is allowed."""
    # bool is an int subclass; True is not an amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(field, value)
    if value < 0 or value > MAX_UINT256:
        raise InvalidAmount(field, value)
    return value


def require_positive_amount(value: object, field: str = "amount") -> int:
    amount = require_uint256(value, field)
    if amount == 0:
        raise InvalidAmount(field, value)
    return amount


def address_from_label(label: str) -> Address:
    """Derive a deterministic address from a human label.

    Used by the CLI and tests so accounts can be named ``alice`` instead of
    spelled out in hex. Labels that are already addresses pass through.
    """
    if _RE_ADDRESS.match(label):
        return label.lower()
    digest = hashlib.sha256(label.encode("utf-8")).digest()
    return "0x" + digest[-ADDRESS_BYTES:].hex()
