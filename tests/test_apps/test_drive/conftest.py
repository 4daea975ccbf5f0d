"""Shared fixtures for drive app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.drive.models import Item, ItemType

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with drive-market bucket.

    Yields:
        boto3 S3 resource with drive-market bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='drive-market')
        yield conn


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def make_folder(db):
    """Factory creating folders directly in the database.

    Returns:
        Callable (owner, name, parent=None) -> Item.
    """
    def factory(owner, name, parent=None):
        return Item.objects.create(
            owner=owner,
            name=name,
            item_type=ItemType.FOLDER,
            parent=parent,
        )
    return factory


@pytest.fixture
def make_file(db):
    """Factory creating file items directly in the database.

    Returns:
        Callable (owner, name, parent=None, **fields) -> Item.
    """
    def factory(owner, name, parent=None, **fields):
        fields.setdefault('size', 100)
        fields.setdefault('mime_type', 'text/plain')
        fields.setdefault(
            'url',
            f'https://drive-market.s3.amazonaws.com/uploads/{owner.id}/{name}',
        )
        return Item.objects.create(
            owner=owner,
            name=name,
            item_type=ItemType.FILE,
            parent=parent,
            **fields,
        )
    return factory
