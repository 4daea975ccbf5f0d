"""Business logic for the transaction ledger."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Final, final

from django.db import transaction as db_transaction
from django.db.models import Count, Q, QuerySet, Sum

from server.apps.drive.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.marketplace.models import (
    Commission,
    Transaction,
    TransactionStatus,
    TransactionType,
)

# User type for Django's dynamic user model
_User = Any

_STATUS_TRANSITIONS: Final = {  # noqa: WPS407
    TransactionStatus.PENDING: frozenset((
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
    )),
    TransactionStatus.COMPLETED: frozenset((TransactionStatus.REFUNDED,)),
}

_ZERO: Final = Decimal(0)

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class EarningsSummary:
    """Money a user made as seller and as affiliate."""

    sales_total: Decimal
    sales_count: int
    commissions_total: Decimal
    commissions_count: int
    commissions_paid_out: Decimal

    @property
    def total_earnings(self) -> Decimal:
        """Sales and received commissions together."""
        return self.sales_total + self.commissions_total


def list_transactions(user: _User) -> QuerySet[Transaction]:
    """Transactions where the user is buyer or seller, newest first."""
    return Transaction.objects.filter(Q(buyer=user) | Q(seller=user))


def get_transaction_for_user(transaction_pk: int, user: _User) -> Transaction:
    """Get a transaction the user took part in.

    Raises:
        NotFoundError: If the transaction does not exist.
        ForbiddenError: If the user is neither buyer nor seller.
    """
    found = Transaction.objects.select_related(
        'listing',
        'shared_link',
        'item',
        'buyer',
        'seller',
    ).filter(id=transaction_pk).first()
    if found is None:
        raise NotFoundError('Transaction not found')
    if user.id not in {found.buyer_id, found.seller_id}:
        raise ForbiddenError('Not authorized to view this transaction')
    return found


def update_transaction(
    transaction_pk: int,
    status: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Transaction:
    """Amend the status or metadata of a transaction.

    Metadata keys are merged into the existing metadata.

    Args:
        transaction_pk: Transaction to amend.
        status: New status, must be a legal transition.
        metadata: Keys to add or overwrite.

    Returns:
        Updated transaction.

    Raises:
        NotFoundError: If the transaction does not exist.
        InvalidInputError: If the status or metadata is invalid.
    """
    if status is not None and status not in TransactionStatus.values:
        raise InvalidInputError('Invalid status')
    if metadata is not None and not isinstance(metadata, dict):
        raise InvalidInputError('Metadata must be an object')

    with db_transaction.atomic():
        found = Transaction.objects.select_for_update().filter(
            id=transaction_pk,
        ).first()
        if found is None:
            raise NotFoundError('Transaction not found')

        update_fields = []
        if status is not None and status != found.status:
            allowed = _STATUS_TRANSITIONS.get(found.status, frozenset())
            if status not in allowed:
                raise InvalidInputError(
                    f'Cannot change transaction from {found.status} to {status}',
                )
            found.status = status
            update_fields.append('status')
        if metadata:
            found.metadata = {**found.metadata, **metadata}
            update_fields.append('metadata')
        if update_fields:
            found.save(update_fields=[*update_fields, 'updated_at'])

    logger.info(
        'Transaction %s amended (%s)',
        found.receipt_number,
        ', '.join(update_fields) or 'no changes',
    )
    return found


def summarize_earnings(user: _User) -> EarningsSummary:
    """Totals of what the user sold and earned as affiliate.

    Args:
        user: Seller or affiliate.

    Returns:
        Sums and counts of purchases of the user's content, commission
        transactions paid to the user, and commissions owed to others
        for the user's sales.
    """
    totals = {
        row['transaction_type']: row
        for row in Transaction.objects.filter(
            seller=user,
            transaction_type__in=(
                TransactionType.PURCHASE,
                TransactionType.COMMISSION,
            ),
        ).values('transaction_type').annotate(
            total=Sum('amount'),
            count=Count('id'),
        ).order_by()
    }
    sales = totals.get(TransactionType.PURCHASE, {})
    commissions = totals.get(TransactionType.COMMISSION, {})

    paid_out = Commission.objects.filter(
        original_transaction__seller=user,
    ).aggregate(total=Sum('commission_amount'))['total']

    return EarningsSummary(
        sales_total=sales.get('total') or _ZERO,
        sales_count=sales.get('count', 0),
        commissions_total=commissions.get('total') or _ZERO,
        commissions_count=commissions.get('count', 0),
        commissions_paid_out=paid_out or _ZERO,
    )
