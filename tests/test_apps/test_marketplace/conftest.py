"""Shared fixtures for marketplace app tests."""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from server.apps.drive.models import Item, ItemType
from server.apps.marketplace.logic.listing_operations import create_listing
from server.apps.marketplace.logic.shared_link_operations import (
    create_shared_link,
)
from server.apps.marketplace.models import LinkType

User = get_user_model()


def _create_user(username):
    return User.objects.create_user(
        username=username,
        password='testpass123',
        email=f'{username}@example.com',
    )


@pytest.fixture
def seller(db):
    """User who owns and sells content.

    Returns:
        User instance.
    """
    return _create_user('seller')


@pytest.fixture
def buyer(db):
    """User who pays for content.

    Returns:
        User instance.
    """
    return _create_user('buyer')


@pytest.fixture
def promoter(db):
    """User who promotes content as affiliate.

    Returns:
        User instance.
    """
    return _create_user('promoter')


@pytest.fixture
def stranger(db):
    """User unrelated to any content.

    Returns:
        User instance.
    """
    return _create_user('stranger')


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


@pytest.fixture
def course(seller, make_folder, make_file):
    """Folder of the seller with nested content.

    Layout::

        Course/
            lesson.pdf
            extras/
                notes.txt

    Returns:
        Top folder item.
    """
    top = make_folder(seller, 'Course')
    make_file(seller, 'lesson.pdf', parent=top, mime_type='application/pdf')
    extras = make_folder(seller, 'extras', parent=top)
    make_file(seller, 'notes.txt', parent=extras)
    return top


@pytest.fixture
def listing(seller, course):
    """Active listing of the course at $10 with affiliates at 20%.

    Returns:
        Listing instance.
    """
    return create_listing(
        seller,
        course.id,
        title='Python course',
        description='Everything about Python',
        price=Decimal('10.00'),
        tags=['Python', ' programming '],
        affiliate_enabled=True,
        default_commission_rate=20,
    )


@pytest.fixture
def cheatsheet(seller, make_file):
    """Single file of the seller.

    Returns:
        File item.
    """
    return make_file(seller, 'cheatsheet.pdf', mime_type='application/pdf')


@pytest.fixture
def monetized_link(seller, cheatsheet):
    """Paid link to the cheatsheet at $5 with affiliates at 10%.

    Returns:
        SharedLink instance.
    """
    return create_shared_link(
        seller,
        cheatsheet.id,
        link_type=LinkType.MONETIZED,
        title='Cheatsheet',
        price='5.00',
        affiliate_enabled=True,
        default_commission_rate=10,
    )


@pytest.fixture
def public_link(seller, course):
    """Free link to the course.

    Returns:
        SharedLink instance.
    """
    return create_shared_link(
        seller,
        course.id,
        link_type=LinkType.PUBLIC,
        title='Free course',
    )
