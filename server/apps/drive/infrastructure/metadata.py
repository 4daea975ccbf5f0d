"""Metadata extraction utilities for uploads."""

import mimetypes
import re
from datetime import UTC, datetime
from typing import BinaryIO, Final

from django.core.files.base import File as DjangoFile

from server.apps.drive.exceptions import InvalidInputError

_NAME_MAX_LENGTH: Final = 255
_UNSAFE_KEY_CHARS: Final = re.compile(r'[^a-zA-Z0-9.-]')


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def get_file_size(file_obj: BinaryIO | DjangoFile) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object.

    Returns:
        File size in bytes.
    """
    if hasattr(file_obj, 'size'):
        return file_obj.size
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def build_storage_key(owner_id: int, filename: str) -> str:
    """Build the object key for a new upload.

    Example: (7, 'My report.pdf') -> 'uploads/7/20260131T143052123456_My_report.pdf'

    Args:
        owner_id: Uploading user's ID.
        filename: Original filename.

    Returns:
        Storage key scoped under the owner.
    """
    timestamp = datetime.now(tz=UTC).strftime('%Y%m%dT%H%M%S%f')
    sanitized = _UNSAFE_KEY_CHARS.sub('_', filename)
    return f'uploads/{owner_id}/{timestamp}_{sanitized}'


def validate_item_name(name: str) -> str:
    """Validate and normalize an item name.

    Args:
        name: Proposed name.

    Returns:
        Name with surrounding whitespace removed.

    Raises:
        InvalidInputError: If the name is empty, too long or contains '/'.
    """
    normalized = (name or '').strip()
    if not normalized:
        raise InvalidInputError('Name is required')
    if len(normalized) > _NAME_MAX_LENGTH:
        raise InvalidInputError(
            f'Name cannot exceed {_NAME_MAX_LENGTH} characters',
        )
    if '/' in normalized:
        raise InvalidInputError('Name cannot contain "/"')
    return normalized
