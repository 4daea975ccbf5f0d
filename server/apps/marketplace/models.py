"""Database models for marketplace app."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from server.apps.drive.models import Item
from server.apps.marketplace.infrastructure.codes import (
    AFFILIATE_CODE_MAX_LENGTH,
    generate_receipt_number,
)

# Constants for field max lengths
_TITLE_MAX_LENGTH: Final = 100
_DESCRIPTION_MAX_LENGTH: Final = 1000
_CHOICE_MAX_LENGTH: Final = 32
_LINK_ID_MAX_LENGTH: Final = 32
_RECEIPT_MAX_LENGTH: Final = 40

# Money: prices in cents, ledger amounts exact for price * rate / 100
_PRICE_DIGITS: Final = 12
_PRICE_PLACES: Final = 2
_AMOUNT_DIGITS: Final = 18
_AMOUNT_PLACES: Final = 6
_RATE_DIGITS: Final = 5
_RATE_PLACES: Final = 2

_ZERO: Final = Decimal(0)
_HUNDRED: Final = Decimal(100)

_rate_validators = (MinValueValidator(_ZERO), MaxValueValidator(_HUNDRED))


def _rate_in_range(field: str) -> models.Q:
    return models.Q(**{f'{field}__gte': 0, f'{field}__lte': 100})


class ListingStatus(models.TextChoices):
    """Availability of a listing."""

    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    SUSPENDED = 'suspended', 'Suspended'


class LinkType(models.TextChoices):
    """Whether a shared link is free or paid."""

    PUBLIC = 'public', 'Public'
    MONETIZED = 'monetized', 'Monetized'


class AffiliateStatus(models.TextChoices):
    """Lifecycle of an affiliate binding."""

    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    SUSPENDED = 'suspended', 'Suspended'


class CommissionStatus(models.TextChoices):
    """Payout state of a commission."""

    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    FAILED = 'failed', 'Failed'


class TransactionStatus(models.TextChoices):
    """Settlement state of a transaction."""

    COMPLETED = 'completed', 'Completed'
    PENDING = 'pending', 'Pending'
    FAILED = 'failed', 'Failed'
    REFUNDED = 'refunded', 'Refunded'


class TransactionType(models.TextChoices):
    """Role of a transaction in a sale."""

    PURCHASE = 'purchase', 'Purchase'
    SALE = 'sale', 'Sale'
    COMMISSION = 'commission', 'Commission'


class PaymentFlow(models.TextChoices):
    """Who moves the money."""

    DIRECT = 'direct', 'Direct'
    ADMIN = 'admin', 'Admin'


@final
class Listing(models.Model):
    """Drive item offered for one-time sale at a fixed price."""

    item = models.OneToOneField(
        Item,
        on_delete=models.CASCADE,
        related_name='listing',
    )

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='listings',
    )

    title = models.CharField(max_length=_TITLE_MAX_LENGTH)
    description = models.CharField(
        max_length=_DESCRIPTION_MAX_LENGTH,
        blank=True,
        default='',
    )

    price = models.DecimalField(
        max_digits=_PRICE_DIGITS,
        decimal_places=_PRICE_PLACES,
    )

    status = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=ListingStatus.choices,
        default=ListingStatus.ACTIVE,
        db_index=True,
    )

    tags = models.JSONField(default=list, blank=True)
    views = models.PositiveIntegerField(default=0)

    affiliate_enabled = models.BooleanField(default=False)
    default_commission_rate = models.DecimalField(
        max_digits=_RATE_DIGITS,
        decimal_places=_RATE_PLACES,
        null=True,
        blank=True,
        validators=_rate_validators,
        help_text='Rate (percent) for self-registered affiliates',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Listing'  # type: ignore[mutable-override]
        verbose_name_plural = 'Listings'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at', '-id']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name='market_listing_price_positive',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(default_commission_rate__isnull=True)
                    | _rate_in_range('default_commission_rate')
                ),
                name='market_listing_rate_range',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.title} ({self.price})'

    @property
    def is_available(self) -> bool:
        """Whether the listing can be bought."""
        return self.status == ListingStatus.ACTIVE


@final
class SharedLink(models.Model):
    """Revocable, optionally paid and expiring pointer to a drive item."""

    item = models.ForeignKey(
        Item,
        on_delete=models.CASCADE,
        related_name='shared_links',
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='shared_links',
    )

    link_id = models.CharField(max_length=_LINK_ID_MAX_LENGTH, unique=True)

    link_type = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=LinkType.choices,
        default=LinkType.PUBLIC,
    )

    price = models.DecimalField(
        max_digits=_PRICE_DIGITS,
        decimal_places=_PRICE_PLACES,
        null=True,
        blank=True,
    )

    title = models.CharField(max_length=_TITLE_MAX_LENGTH)
    description = models.CharField(
        max_length=_DESCRIPTION_MAX_LENGTH,
        blank=True,
        default='',
    )

    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    access_count = models.PositiveIntegerField(default=0)

    paid_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name='paid_shared_links',
        blank=True,
    )

    affiliate_enabled = models.BooleanField(default=False)
    default_commission_rate = models.DecimalField(
        max_digits=_RATE_DIGITS,
        decimal_places=_RATE_PLACES,
        null=True,
        blank=True,
        validators=_rate_validators,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Shared Link'  # type: ignore[mutable-override]
        verbose_name_plural = 'Shared Links'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at', '-id']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # Price is set exactly for monetized links
            models.CheckConstraint(
                condition=(
                    models.Q(
                        link_type=LinkType.MONETIZED,
                        price__isnull=False,
                        price__gt=0,
                    )
                    | models.Q(link_type=LinkType.PUBLIC, price__isnull=True)
                ),
                name='market_link_price_matches_type',
            ),
            models.UniqueConstraint(
                fields=['item', 'owner'],
                condition=models.Q(is_active=True),
                name='market_one_active_link_per_item',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(default_commission_rate__isnull=True)
                    | _rate_in_range('default_commission_rate')
                ),
                name='market_link_rate_range',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.title} ({self.link_id})'

    @property
    def is_monetized(self) -> bool:
        """Whether access to the link has to be paid for."""
        return self.link_type == LinkType.MONETIZED

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the link is past its expiry time.

        Args:
            now: Reference time, defaults to the current time.

        Returns:
            True if the link has an expiry time that has passed.
        """
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())


@final
class Affiliate(models.Model):
    """Referral binding between content and the user promoting it.

    Exactly one of ``listing`` and ``shared_link`` is set.
    ``total_earnings`` and ``total_sales`` are maintained by settlement
    and only ever incremented.
    """

    listing = models.ForeignKey(
        Listing,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='affiliates',
    )

    shared_link = models.ForeignKey(
        SharedLink,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='affiliates',
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='content_affiliates',
        help_text='Owner of the promoted content',
    )

    affiliate_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='affiliations',
    )

    commission_rate = models.DecimalField(
        max_digits=_RATE_DIGITS,
        decimal_places=_RATE_PLACES,
        validators=_rate_validators,
    )

    # Stored upper-case, matched case-insensitively
    affiliate_code = models.CharField(
        max_length=AFFILIATE_CODE_MAX_LENGTH,
        unique=True,
    )

    status = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=AffiliateStatus.choices,
        default=AffiliateStatus.ACTIVE,
    )

    total_earnings = models.DecimalField(
        max_digits=_AMOUNT_DIGITS,
        decimal_places=_AMOUNT_PLACES,
        default=_ZERO,
    )
    total_sales = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Affiliate'  # type: ignore[mutable-override]
        verbose_name_plural = 'Affiliates'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at', '-id']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=(
                    models.Q(listing__isnull=False, shared_link__isnull=True)
                    | models.Q(listing__isnull=True, shared_link__isnull=False)
                ),
                name='market_affiliate_one_content',
            ),
            models.UniqueConstraint(
                fields=['listing', 'owner', 'affiliate_user'],
                condition=models.Q(listing__isnull=False),
                name='market_affiliate_listing_unique',
            ),
            models.UniqueConstraint(
                fields=['shared_link', 'owner', 'affiliate_user'],
                condition=models.Q(shared_link__isnull=False),
                name='market_affiliate_link_unique',
            ),
            models.CheckConstraint(
                condition=_rate_in_range('commission_rate'),
                name='market_affiliate_rate_range',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.affiliate_code} ({self.commission_rate}%)'

    @property
    def content(self) -> Listing | SharedLink:
        """Listing or shared link this binding promotes."""
        return self.listing or self.shared_link  # type: ignore[return-value]

    @property
    def is_active(self) -> bool:
        """Whether the code earns commission."""
        return self.status == AffiliateStatus.ACTIVE


@final
class Transaction(models.Model):
    """Ledger record of one money movement.

    Rows are never deleted with the content they refer to. Only
    ``status``, ``metadata`` and ``affiliate_info`` change after creation.
    """

    listing = models.ForeignKey(
        Listing,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions',
    )

    shared_link = models.ForeignKey(
        SharedLink,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions',
    )

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='purchases',
    )

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='sales',
    )

    item = models.ForeignKey(
        Item,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions',
    )

    amount = models.DecimalField(
        max_digits=_AMOUNT_DIGITS,
        decimal_places=_AMOUNT_PLACES,
    )

    status = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=TransactionStatus.choices,
        default=TransactionStatus.PENDING,
        db_index=True,
    )

    transaction_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    receipt_number = models.CharField(
        max_length=_RECEIPT_MAX_LENGTH,
        unique=True,
        default=generate_receipt_number,
        editable=False,
    )

    purchase_date = models.DateTimeField(default=timezone.now)

    transaction_type = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=TransactionType.choices,
        default=TransactionType.PURCHASE,
    )

    payment_flow = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=PaymentFlow.choices,
        default=PaymentFlow.DIRECT,
    )

    affiliate_info = models.JSONField(null=True, blank=True)

    parent_transaction = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='child_transactions',
    )

    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Transaction'  # type: ignore[mutable-override]
        verbose_name_plural = 'Transactions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-purchase_date', '-id']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['buyer', 'transaction_type'],
                name='market_tx_buyer_type_idx',
            ),
            models.Index(
                fields=['seller', 'transaction_type'],
                name='market_tx_seller_type_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name='market_tx_amount_not_negative',
            ),
            # One paid access per buyer and content
            models.UniqueConstraint(
                fields=['buyer', 'listing'],
                condition=models.Q(
                    transaction_type=TransactionType.PURCHASE,
                    status=TransactionStatus.COMPLETED,
                    listing__isnull=False,
                ),
                name='market_one_listing_purchase',
            ),
            models.UniqueConstraint(
                fields=['buyer', 'shared_link'],
                condition=models.Q(
                    transaction_type=TransactionType.PURCHASE,
                    status=TransactionStatus.COMPLETED,
                    shared_link__isnull=False,
                ),
                name='market_one_link_purchase',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.receipt_number} {self.transaction_type} {self.amount}'


@final
class Commission(models.Model):
    """Commission owed to an affiliate for one sale."""

    # Kept when the affiliate binding is removed
    affiliate = models.ForeignKey(
        Affiliate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='commissions',
    )

    original_transaction = models.ForeignKey(
        Transaction,
        on_delete=models.PROTECT,
        related_name='commissions',
    )

    commission_transaction = models.OneToOneField(
        Transaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='commission_record',
    )

    commission_amount = models.DecimalField(
        max_digits=_AMOUNT_DIGITS,
        decimal_places=_AMOUNT_PLACES,
    )

    # Affiliate rate at the time of sale
    commission_rate = models.DecimalField(
        max_digits=_RATE_DIGITS,
        decimal_places=_RATE_PLACES,
        validators=_rate_validators,
    )

    status = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=CommissionStatus.choices,
        default=CommissionStatus.PENDING,
        db_index=True,
    )

    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Commission'  # type: ignore[mutable-override]
        verbose_name_plural = 'Commissions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at', '-id']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['original_transaction', 'affiliate'],
                name='market_one_commission_per_sale',
            ),
            models.CheckConstraint(
                condition=models.Q(commission_amount__gte=0),
                name='market_commission_not_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.commission_amount} @ {self.commission_rate}% ({self.status})'
