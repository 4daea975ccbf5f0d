"""Tests for upload metadata helpers."""

from io import BytesIO

import pytest
from django.core.files.base import ContentFile

from server.apps.drive.exceptions import InvalidInputError
from server.apps.drive.infrastructure.metadata import (
    build_storage_key,
    detect_mime_type,
    get_file_size,
    validate_item_name,
)

@pytest.mark.parametrize(('filename', 'expected'), [
    ('notes.txt', 'text/plain'),
    ('report.pdf', 'application/pdf'),
    ('photo.jpg', 'image/jpeg'),
    ('no_extension', 'application/octet-stream'),
])
def test_detect_mime_type(filename, expected):
    """Test MIME type guessing from the extension."""
    assert detect_mime_type(filename) == expected

def test_get_file_size_django_file():
    """Test size is taken from Django file objects."""
    assert get_file_size(ContentFile(b'12345')) == 5

def test_get_file_size_rewinds_stream():
    """Test plain streams are measured and rewound."""
    stream = BytesIO(b'hello world')

    assert get_file_size(stream) == 11
    assert stream.read() == b'hello world'

def test_build_storage_key_scoped_to_owner():
    """Test keys live under the owner's prefix with a safe filename."""
    key = build_storage_key(7, 'My report (final).pdf')

    assert key.startswith('uploads/7/')
    assert key.endswith('_My_report__final_.pdf')

def test_validate_item_name_strips():
    """Test surrounding whitespace is removed."""
    assert validate_item_name('  report.pdf ') == 'report.pdf'

@pytest.mark.parametrize('name', ['', '   ', None, 'a/b', 'x' * 256])
def test_validate_item_name_rejects(name):
    """Test invalid names raise InvalidInputError."""
    with pytest.raises(InvalidInputError):
        validate_item_name(name)
