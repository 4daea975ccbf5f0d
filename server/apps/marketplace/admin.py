"""Django admin configuration for marketplace app."""


from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.marketplace.models import (
    Affiliate,
    Commission,
    Listing,
    SharedLink,
    Transaction,
    TransactionStatus,
)

_STATUS_COLORS = {  # noqa: WPS407
    TransactionStatus.COMPLETED: '#28a745',
    TransactionStatus.PENDING: '#ffc107',
    TransactionStatus.FAILED: '#dc3545',
    TransactionStatus.REFUNDED: '#6c757d',
}


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin[Listing]):
    """Admin interface for Listing model."""

    list_display = [
        'title',
        'seller',
        'price',
        'status',
        'views',
        'affiliate_enabled',
        'created_at',
    ]

    list_filter = [
        'status',
        'affiliate_enabled',
        'created_at',
    ]

    search_fields = [
        'title',
        'description',
        'seller__username',
    ]

    raw_id_fields = ['item', 'seller']

    readonly_fields = ['views', 'created_at', 'updated_at']

    def get_queryset(self, request: HttpRequest) -> QuerySet[Listing]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('seller', 'item')


@admin.register(SharedLink)
class SharedLinkAdmin(admin.ModelAdmin[SharedLink]):
    """Admin interface for SharedLink model."""

    list_display = [
        'title',
        'link_id',
        'owner',
        'link_type',
        'price',
        'is_active',
        'expires_at',
        'access_count',
    ]

    list_filter = [
        'link_type',
        'is_active',
        'affiliate_enabled',
    ]

    search_fields = [
        'title',
        'link_id',
        'owner__username',
    ]

    raw_id_fields = ['item', 'owner']

    filter_horizontal = ['paid_users']

    readonly_fields = ['link_id', 'access_count', 'created_at', 'updated_at']

    def get_queryset(self, request: HttpRequest) -> QuerySet[SharedLink]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('owner', 'item')


@admin.register(Affiliate)
class AffiliateAdmin(admin.ModelAdmin[Affiliate]):
    """Admin interface for Affiliate model."""

    list_display = [
        'affiliate_code',
        'affiliate_user',
        'owner',
        'content_display',
        'commission_rate',
        'status',
        'total_sales',
        'total_earnings',
    ]

    list_filter = [
        'status',
        'created_at',
    ]

    search_fields = [
        'affiliate_code',
        'affiliate_user__username',
        'owner__username',
    ]

    raw_id_fields = ['listing', 'shared_link', 'owner', 'affiliate_user']

    # Counters are maintained by settlement only
    readonly_fields = [
        'affiliate_code',
        'total_earnings',
        'total_sales',
        'created_at',
        'updated_at',
    ]

    def content_display(self, obj: Affiliate) -> str:
        """Title of the promoted listing or link.

        Args:
            obj: Affiliate instance.

        Returns:
            Content title with its kind.
        """
        if obj.listing_id is not None:
            return f'Listing: {obj.listing.title}'  # type: ignore[union-attr]
        return f'Link: {obj.shared_link.title}'  # type: ignore[union-attr]
    content_display.short_description = 'Content'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Affiliate]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related(
            'listing',
            'shared_link',
            'owner',
            'affiliate_user',
        )


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin[Commission]):
    """Admin interface for Commission model."""

    list_display = [
        'affiliate',
        'commission_amount',
        'commission_rate',
        'status',
        'paid_at',
        'created_at',
    ]

    list_filter = [
        'status',
        'created_at',
    ]

    search_fields = [
        'affiliate__affiliate_code',
        'original_transaction__receipt_number',
    ]

    raw_id_fields = [
        'affiliate',
        'original_transaction',
        'commission_transaction',
    ]

    readonly_fields = [
        'commission_amount',
        'commission_rate',
        'created_at',
        'updated_at',
    ]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin[Transaction]):
    """Admin interface for Transaction model."""

    list_display = [
        'receipt_number',
        'transaction_type',
        'buyer',
        'seller',
        'amount',
        'status_display',
        'payment_flow',
        'purchase_date',
    ]

    list_filter = [
        'transaction_type',
        'status',
        'payment_flow',
        'purchase_date',
    ]

    search_fields = [
        'receipt_number',
        'transaction_id',
        'buyer__username',
        'seller__username',
    ]

    raw_id_fields = [
        'listing',
        'shared_link',
        'item',
        'buyer',
        'seller',
        'parent_transaction',
    ]

    # Ledger rows: only status and metadata are amendable
    readonly_fields = [
        'transaction_id',
        'receipt_number',
        'amount',
        'transaction_type',
        'payment_flow',
        'purchase_date',
        'affiliate_info',
        'created_at',
        'updated_at',
    ]

    def status_display(self, obj: Transaction) -> str:
        """Display status with a color.

        Args:
            obj: Transaction instance.

        Returns:
            HTML formatted status.
        """
        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=_STATUS_COLORS.get(obj.status, '#000000'),
            status=obj.get_status_display(),
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Transaction]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('buyer', 'seller')
