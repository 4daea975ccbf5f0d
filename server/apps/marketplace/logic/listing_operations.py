"""Business logic for listings."""

import logging
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any, Final

from django.db import IntegrityError, transaction
from django.db.models import F

from server.apps.drive.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.logic.item_operations import get_item
from server.apps.marketplace.exceptions import DuplicateListingError
from server.apps.marketplace.models import (
    Listing,
    ListingStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)

# User type for Django's dynamic user model
_User = Any

_TITLE_MAX_LENGTH: Final = 100
_DESCRIPTION_MAX_LENGTH: Final = 1000
_PRICE_QUANTUM: Final = Decimal('0.01')

# Sellers may switch between these, suspension is an admin action
_SELLER_STATUSES: Final = frozenset((ListingStatus.ACTIVE, ListingStatus.INACTIVE))

logger = logging.getLogger(__name__)


def parse_price(price: Any) -> Decimal:
    """Validate a price and round it to cents.

    Args:
        price: Decimal, int or numeric string.

    Returns:
        Positive Decimal with two decimal places.

    Raises:
        InvalidInputError: If the price is not a positive number.
    """
    try:
        amount = Decimal(str(price)).quantize(_PRICE_QUANTUM)
    except (InvalidOperation, ValueError):
        raise InvalidInputError('Price must be a number') from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidInputError('Price must be greater than 0')
    return amount


def parse_commission_rate(rate: Any) -> Decimal:
    """Validate a commission rate given in percent.

    Args:
        rate: Decimal, int or numeric string.

    Returns:
        Rate between 0 and 100.

    Raises:
        InvalidInputError: If the rate is not a number in range.
    """
    try:
        value = Decimal(str(rate))
    except (InvalidOperation, ValueError):
        raise InvalidInputError('Commission rate must be a number') from None
    if not value.is_finite() or not 0 <= value <= 100:
        raise InvalidInputError('Commission rate must be between 0 and 100')
    return value


def validate_text(value: str, field: str, max_length: int, *, required: bool) -> str:
    """Strip a text field and check its length.

    Raises:
        InvalidInputError: If the value is missing or too long.
    """
    value = (value or '').strip()
    if required and not value:
        raise InvalidInputError(f'{field} is required')
    if len(value) > max_length:
        raise InvalidInputError(f'{field} cannot exceed {max_length} characters')
    return value


def _clean_tags(tags: Iterable[str]) -> list[str]:
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]


def create_listing(  # noqa: WPS211
    seller: _User,
    item_id: int,
    title: str,
    description: str,
    price: Any,
    tags: Iterable[str] = (),
    affiliate_enabled: bool = False,
    default_commission_rate: Any = None,
) -> Listing:
    """Put an item of the seller up for sale.

    Args:
        seller: Owner of the item.
        item_id: Item to sell.
        title: Listing title.
        description: Listing description.
        price: Positive price.
        tags: Search tags.
        affiliate_enabled: Allow users to self-register as affiliates.
        default_commission_rate: Rate for self-registered affiliates.

    Returns:
        Created listing.

    Raises:
        NotFoundError: If the item does not exist or is not owned.
        InvalidInputError: If a field fails validation.
        DuplicateListingError: If the item is already listed.
    """
    title = validate_text(title, 'Title', _TITLE_MAX_LENGTH, required=True)
    description = validate_text(
        description,
        'Description',
        _DESCRIPTION_MAX_LENGTH,
        required=False,
    )
    amount = parse_price(price)
    rate = None
    if default_commission_rate is not None:
        rate = parse_commission_rate(default_commission_rate)

    try:
        with transaction.atomic():
            item = get_item(item_id, seller)
            if Listing.objects.filter(item=item).exists():
                raise DuplicateListingError()
            listing = Listing.objects.create(
                item=item,
                seller=seller,
                title=title,
                description=description,
                price=amount,
                tags=_clean_tags(tags),
                affiliate_enabled=affiliate_enabled,
                default_commission_rate=rate,
            )
    except IntegrityError as error:
        raise DuplicateListingError() from error

    logger.info(
        'Listing created: %s (ID: %d) for item %d at %s',
        title,
        listing.id,
        item_id,
        amount,
    )
    return listing


def get_listing(listing_id: int) -> Listing:
    """Get a listing with its item and seller.

    Raises:
        NotFoundError: If the listing does not exist.
    """
    try:
        return Listing.objects.select_related('item', 'seller').get(
            id=listing_id,
        )
    except Listing.DoesNotExist:
        raise NotFoundError('Listing not found') from None


def _get_owned_listing(listing_id: int, seller: _User) -> Listing:
    listing = Listing.objects.select_for_update().filter(id=listing_id).first()
    if listing is None:
        raise NotFoundError('Listing not found')
    if listing.seller_id != seller.id:
        raise ForbiddenError('Not authorized to modify this listing')
    return listing


def update_listing(listing_id: int, seller: _User, **fields: Any) -> Listing:
    """Change listing fields.

    Args:
        listing_id: Listing to change.
        seller: Acting user, must be the seller.
        fields: Any of title, description, price, status, tags,
            affiliate_enabled, default_commission_rate.

    Returns:
        Updated listing.

    Raises:
        NotFoundError: If the listing does not exist.
        ForbiddenError: If the user is not the seller.
        InvalidInputError: If a field is unknown or fails validation.
    """
    cleaners = {
        'title': lambda value: validate_text(
            value, 'Title', _TITLE_MAX_LENGTH, required=True,
        ),
        'description': lambda value: validate_text(
            value, 'Description', _DESCRIPTION_MAX_LENGTH, required=False,
        ),
        'price': parse_price,
        'status': _parse_seller_status,
        'tags': _clean_tags,
        'affiliate_enabled': _parse_flag,
        'default_commission_rate': lambda value: (
            None if value is None else parse_commission_rate(value)
        ),
    }
    unknown = set(fields) - set(cleaners)
    if unknown:
        raise InvalidInputError(f'Unknown fields: {", ".join(sorted(unknown))}')
    cleaned = {name: cleaners[name](value) for name, value in fields.items()}

    with transaction.atomic():
        listing = _get_owned_listing(listing_id, seller)
        for name, value in cleaned.items():
            setattr(listing, name, value)
        if cleaned:
            listing.save(update_fields=[*cleaned, 'updated_at'])

    logger.info(
        'Listing %d updated (%s)',
        listing_id,
        ', '.join(cleaned) or 'no changes',
    )
    return listing


def _parse_seller_status(status: str) -> str:
    if status not in _SELLER_STATUSES:
        raise InvalidInputError('Invalid status. Must be active or inactive')
    return status


def _parse_flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidInputError('affiliate_enabled must be true or false')
    return value


def delete_listing(listing_id: int, seller: _User) -> None:
    """Withdraw a listing.

    Past transactions keep their rows with the listing reference cleared.

    Raises:
        NotFoundError: If the listing does not exist.
        ForbiddenError: If the user is not the seller.
    """
    with transaction.atomic():
        listing = _get_owned_listing(listing_id, seller)
        listing.delete()

    logger.info('Listing %d deleted by user %s', listing_id, seller.username)


def record_listing_view(listing_id: int) -> int:
    """Count one view of a listing.

    Returns:
        View count after the increment.

    Raises:
        NotFoundError: If the listing does not exist.
    """
    updated = Listing.objects.filter(id=listing_id).update(views=F('views') + 1)
    if not updated:
        raise NotFoundError('Listing not found')
    return Listing.objects.values_list('views', flat=True).get(id=listing_id)


def get_purchase_status(listing_id: int, user: _User) -> bool:
    """Check whether the user has bought the listing.

    Args:
        listing_id: Listing to check.
        user: Potential buyer.

    Returns:
        True if a completed purchase exists.
    """
    return Transaction.objects.filter(
        listing_id=listing_id,
        buyer=user,
        transaction_type=TransactionType.PURCHASE,
        status=TransactionStatus.COMPLETED,
    ).exists()
