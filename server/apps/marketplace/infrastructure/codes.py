"""Random identifiers handed out by the marketplace.

None of these are assumed to be globally unique. Callers check the
store (and rely on the unique columns) before using a value.
"""

import secrets
import string
import time
import uuid
from typing import Final

_CODE_ALPHABET: Final = string.ascii_uppercase + string.digits
_BASE36_ALPHABET: Final = string.digits + string.ascii_uppercase
_LINK_ID_LENGTH: Final = 16
_RECEIPT_RANDOM_LENGTH: Final = 6

AFFILIATE_CODE_MIN_LENGTH: Final = 6
AFFILIATE_CODE_MAX_LENGTH: Final = 20


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def generate_affiliate_code(length: int) -> str:
    """Generate an upper-case alphanumeric affiliate code.

    Args:
        length: Number of characters, between 6 and 20.

    Returns:
        Code such as 'K3J9QZ2M'.

    Raises:
        ValueError: If the length is out of range.
    """
    if not AFFILIATE_CODE_MIN_LENGTH <= length <= AFFILIATE_CODE_MAX_LENGTH:
        raise ValueError(f'Affiliate code length out of range: {length}')
    return ''.join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def normalize_affiliate_code(code: str) -> str:
    """Canonical form used for storage and lookup."""
    return code.strip().upper()


def generate_link_id() -> str:
    """Generate a 16 character hex id for a shared link url."""
    return uuid.uuid4().hex[:_LINK_ID_LENGTH]


def generate_receipt_number() -> str:
    """Generate a receipt number like 'RCP-LZ2K8F0Q-7XK2PA'.

    The middle part is the current time in milliseconds, base 36.
    """
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    suffix = ''.join(
        secrets.choice(_BASE36_ALPHABET)
        for _ in range(_RECEIPT_RANDOM_LENGTH)
    )
    return f'RCP-{timestamp}-{suffix}'
