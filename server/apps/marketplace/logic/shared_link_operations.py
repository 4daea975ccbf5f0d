"""Business logic for shared links."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final, final

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from server.apps.drive.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.logic.item_operations import ensure_user_folder, get_item
from server.apps.drive.logic.tree_operations import copy_subtree
from server.apps.drive.models import ContentSource, Item
from server.apps.marketplace.exceptions import (
    ExpiredError,
    PaymentRequiredError,
)
from server.apps.marketplace.infrastructure.codes import generate_link_id
from server.apps.marketplace.logic.listing_operations import (
    parse_commission_rate,
    parse_price,
    validate_text,
)
from server.apps.marketplace.models import LinkType, SharedLink

# User type for Django's dynamic user model
_User = Any

_TITLE_MAX_LENGTH: Final = 100
_DESCRIPTION_MAX_LENGTH: Final = 1000

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class LinkAccess:
    """What a visitor may see of a shared link."""

    link: SharedLink
    can_access: bool
    requires_payment: bool = False
    requires_auth: bool = False
    already_paid: bool = False
    is_owner: bool = False

    def public_info(self) -> dict[str, Any]:
        """Fields shown to visitors who have not paid."""
        item = self.link.item
        return {
            'link_id': self.link.link_id,
            'title': self.link.title,
            'description': self.link.description,
            'link_type': self.link.link_type,
            'price': self.link.price,
            'owner_id': self.link.owner_id,
            'item': {
                'name': item.name,
                'item_type': item.item_type,
                'size': item.size,
            },
        }


def _unique_link_id() -> str:
    attempts = settings.MARKETPLACE_CODE_GENERATION_ATTEMPTS
    for _ in range(attempts):
        link_id = generate_link_id()
        if not SharedLink.objects.filter(link_id=link_id).exists():
            return link_id
    raise ConflictError('Could not generate a unique link id')


def create_shared_link(  # noqa: WPS211
    owner: _User,
    item_id: int,
    link_type: str,
    title: str,
    price: Any = None,
    description: str = '',
    expires_at: datetime | None = None,
    affiliate_enabled: bool = False,
    default_commission_rate: Any = None,
) -> SharedLink:
    """Share an item through a link.

    Args:
        owner: Owner of the item.
        item_id: Item to share.
        link_type: 'public' or 'monetized'.
        title: Link title.
        price: Required for monetized links, ignored for public ones.
        description: Link description.
        expires_at: Time after which the link stops working.
        affiliate_enabled: Allow users to self-register as affiliates.
        default_commission_rate: Rate for self-registered affiliates.

    Returns:
        Created shared link.

    Raises:
        NotFoundError: If the item does not exist or is not owned.
        InvalidInputError: If a field fails validation.
        ConflictError: If the item already has an active link.
    """
    if link_type not in LinkType.values:
        raise InvalidInputError('Invalid link type')
    title = validate_text(title, 'Title', _TITLE_MAX_LENGTH, required=True)
    description = validate_text(
        description,
        'Description',
        _DESCRIPTION_MAX_LENGTH,
        required=False,
    )

    amount = None
    if link_type == LinkType.MONETIZED:
        if price is None:
            raise InvalidInputError('Price is required for monetized links')
        amount = parse_price(price)

    rate = None
    if default_commission_rate is not None:
        rate = parse_commission_rate(default_commission_rate)

    if expires_at is not None and expires_at <= timezone.now():
        raise InvalidInputError('Expiry time must be in the future')

    try:
        with transaction.atomic():
            item = get_item(item_id, owner)
            if SharedLink.objects.filter(
                item=item,
                owner=owner,
                is_active=True,
            ).exists():
                raise ConflictError(
                    'An active shared link already exists for this item',
                )
            link = SharedLink.objects.create(
                item=item,
                owner=owner,
                link_id=_unique_link_id(),
                link_type=link_type,
                price=amount,
                title=title,
                description=description,
                expires_at=expires_at,
                affiliate_enabled=affiliate_enabled,
                default_commission_rate=rate,
            )
    except IntegrityError as error:
        raise ConflictError(
            'An active shared link already exists for this item',
        ) from error

    logger.info(
        'Shared link %s created for item %d (%s)',
        link.link_id,
        item_id,
        link_type,
    )
    return link


def list_shared_links(
    owner: _User,
    link_type: str | None = None,
) -> QuerySet[SharedLink]:
    """Active links of a user, newest first."""
    links = SharedLink.objects.filter(owner=owner, is_active=True)
    if link_type in LinkType.values:
        links = links.filter(link_type=link_type)
    return links.select_related('item')


def get_active_link(link_id: str, *, lock: bool = False) -> SharedLink:
    """Get a link that can still be used.

    Raises:
        NotFoundError: If the link does not exist or was deactivated.
        ExpiredError: If the link is past its expiry time.
    """
    links = SharedLink.objects.select_related('item')
    if lock:
        links = links.select_for_update(of=('self',))
    link = links.filter(link_id=link_id, is_active=True).first()
    if link is None:
        raise NotFoundError('Link not found or expired')
    if link.is_expired():
        logger.warning('Access to expired shared link %s', link_id)
        raise ExpiredError()
    return link


def _has_paid(link: SharedLink, user: _User | None) -> bool:
    if user is None:
        return False
    return link.paid_users.filter(id=user.id).exists()


def get_link_access(link_id: str, user: _User | None = None) -> LinkAccess:
    """Resolve what a visitor gets when opening a link.

    Every call counts as one access.

    Args:
        link_id: Public link id.
        user: Authenticated visitor, None for anonymous ones.

    Returns:
        Access decision. Visitors without access should only be shown
        ``LinkAccess.public_info()``.

    Raises:
        NotFoundError: If the link does not exist or was deactivated.
        ExpiredError: If the link is past its expiry time.
    """
    link = get_active_link(link_id)
    SharedLink.objects.filter(id=link.id).update(
        access_count=F('access_count') + 1,
    )

    is_owner = user is not None and link.owner_id == user.id
    if is_owner:
        return LinkAccess(link=link, can_access=True, is_owner=True)
    if not link.is_monetized:
        return LinkAccess(link=link, can_access=True)
    if _has_paid(link, user):
        return LinkAccess(link=link, can_access=True, already_paid=True)

    return LinkAccess(
        link=link,
        can_access=False,
        requires_payment=True,
        requires_auth=user is None,
    )


def copy_link_to_drive(link_id: str, user: _User) -> Item:
    """Copy the shared item into the user's 'shared' folder.

    Args:
        link_id: Public link id.
        user: User receiving the copy.

    Returns:
        Root of the copy.

    Raises:
        NotFoundError: If the link does not exist or was deactivated.
        ExpiredError: If the link is past its expiry time.
        PaymentRequiredError: If the link is monetized and unpaid.
    """
    with transaction.atomic():
        link = get_active_link(link_id)
        if (
            link.is_monetized
            and link.owner_id != user.id
            and not _has_paid(link, user)
        ):
            raise PaymentRequiredError(
                'Payment required to access this content',
            )

        folder = ensure_user_folder(user, settings.DRIVE_SHARED_FOLDER_NAME)
        copied = copy_subtree(
            link.item_id,
            folder.id,
            user,
            content_source=ContentSource.SHARED_LINK,
        )

    logger.info(
        'Shared link %s copied to drive of user %s as item %d',
        link_id,
        user.username,
        copied.id,
    )
    return copied


def deactivate_shared_link(link_id: str, owner: _User) -> SharedLink:
    """Revoke a link.

    Raises:
        NotFoundError: If the link does not exist.
        ForbiddenError: If the user does not own the link.
    """
    with transaction.atomic():
        link = SharedLink.objects.select_for_update().filter(
            link_id=link_id,
        ).first()
        if link is None:
            raise NotFoundError('Shared link not found')
        if link.owner_id != owner.id:
            raise ForbiddenError('Not authorized to modify this link')
        if link.is_active:
            link.is_active = False
            link.save(update_fields=['is_active', 'updated_at'])

    logger.info('Shared link %s deactivated', link_id)
    return link


def expire_link(link_pk: int) -> bool:
    """Deactivate a link whose expiry time has passed.

    Returns:
        True if the link was deactivated by this call.
    """
    deactivated = SharedLink.objects.filter(
        id=link_pk,
        is_active=True,
        expires_at__lte=timezone.now(),
    ).update(is_active=False, updated_at=timezone.now())
    return bool(deactivated)
