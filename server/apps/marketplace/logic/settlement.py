"""Purchase settlement.

Turns a payment confirmed by the gateway into ledger entries and access:

1. Re-check that the content can still be bought by this buyer.
2. Record the purchase transaction.
3. Grant access: add the buyer to the link's paid users, or copy the
   listed item into the buyer's 'marketplace' folder.
4. Attribute the sale to an affiliate when a valid code came along.

Steps 1-3 are one atomic unit, the purchase is the transactional
boundary. Step 4 runs afterwards in its own atomic block. Its failures
are logged and dropped, they never undo the purchase.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Final, final

from django.conf import settings
from django.db import IntegrityError, transaction as db_transaction
from django.db.models import F

from server.apps.drive.exceptions import InvalidInputError, NotFoundError
from server.apps.drive.infrastructure.indexing import (
    schedule_subtree_processing,
)
from server.apps.drive.logic.item_operations import ensure_user_folder
from server.apps.drive.logic.tree_operations import (
    collect_subtree_ids,
    copy_subtree,
)
from server.apps.drive.models import ContentSource, Item
from server.apps.marketplace.exceptions import (
    AlreadyPurchasedError,
    ExpiredError,
    SelfPurchaseError,
)
from server.apps.marketplace.infrastructure.codes import (
    normalize_affiliate_code,
)
from server.apps.marketplace.infrastructure.payments import (
    PaymentConfirmation,
)
from server.apps.marketplace.logic.content import (
    Content,
    ContentRef,
    content_filter,
    content_owner_id,
    content_price,
    load_content,
)
from server.apps.marketplace.models import (
    Affiliate,
    AffiliateStatus,
    Commission,
    CommissionStatus,
    Listing,
    PaymentFlow,
    SharedLink,
    Transaction,
    TransactionStatus,
    TransactionType,
)

# User type for Django's dynamic user model
_User = Any

PURCHASED_COPY_SUFFIX: Final = ' (Purchased)'

_AMOUNT_QUANTUM: Final = Decimal('0.000001')

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class CommissionSummary:
    """Ledger entries created for an affiliate sale."""

    commission: Commission
    commission_transaction: Transaction
    seller_transaction: Transaction

    @property
    def amount(self) -> Decimal:
        """Commission owed to the affiliate."""
        return self.commission.commission_amount

    @property
    def rate(self) -> Decimal:
        """Rate the commission was computed with."""
        return self.commission.commission_rate


@final
@dataclass(frozen=True, slots=True)
class SettlementResult:
    """Outcome of a settled purchase."""

    transaction: Transaction
    copied_item: Item | None = None
    commission: CommissionSummary | None = None


def compute_commission(price: Decimal, rate: Decimal) -> Decimal:
    """Commission for a sale: price * rate / 100.

    Args:
        price: Sale price.
        rate: Commission rate in percent.

    Returns:
        Amount, exact to six decimal places.
    """
    return (price * rate / Decimal(100)).quantize(_AMOUNT_QUANTUM)


def _check_eligibility(content: Content, buyer: _User) -> None:
    """Step 1: the buyer may still pay for the content.

    Raises:
        NotFoundError: If a shared link was deactivated.
        ExpiredError: If a shared link is past its expiry time.
        InvalidInputError: If the content is not for sale.
        SelfPurchaseError: If the buyer owns the content.
        AlreadyPurchasedError: If the buyer already paid.
    """
    if isinstance(content, Listing):
        if not content.is_available:
            raise InvalidInputError(
                'This listing is no longer available for purchase',
            )
    else:
        if not content.is_active:
            raise NotFoundError('Link not found or expired')
        if content.is_expired():
            raise ExpiredError()
        if not content.is_monetized:
            raise InvalidInputError('This link is free to access')

    if content_owner_id(content) == buyer.id:
        raise SelfPurchaseError()

    if isinstance(content, SharedLink):
        already_paid = content.paid_users.filter(id=buyer.id).exists()
    else:
        already_paid = Transaction.objects.filter(
            listing=content,
            buyer=buyer,
            transaction_type=TransactionType.PURCHASE,
            status=TransactionStatus.COMPLETED,
        ).exists()
    if already_paid:
        raise AlreadyPurchasedError()


def _record_purchase(
    content: Content,
    buyer: _User,
    payment: PaymentConfirmation | None,
) -> Transaction:
    """Step 2: the purchase transaction.

    Raises:
        AlreadyPurchasedError: If a concurrent purchase won the race.
    """
    try:
        with db_transaction.atomic():
            return Transaction.objects.create(
                **content_filter(content),
                buyer=buyer,
                seller_id=content_owner_id(content),
                item_id=content.item_id,
                amount=content_price(content),
                status=TransactionStatus.COMPLETED,
                transaction_type=TransactionType.PURCHASE,
                payment_flow=PaymentFlow.DIRECT,
                metadata=payment.as_metadata() if payment else {},
            )
    except IntegrityError as error:
        raise AlreadyPurchasedError() from error


def _grant_access(content: Content, buyer: _User) -> Item | None:
    """Step 3: let the buyer at the content.

    Returns:
        Root of the buyer's copy for listings, None for shared links.
    """
    if isinstance(content, SharedLink):
        # Set semantics, adding twice is a no-op
        content.paid_users.add(buyer)
        return None

    folder = ensure_user_folder(buyer, settings.MARKETPLACE_FOLDER_NAME)
    copied = copy_subtree(
        content.item_id,
        folder.id,
        buyer,
        name_suffix=PURCHASED_COPY_SUFFIX,
        content_source=ContentSource.MARKETPLACE_PURCHASE,
    )
    schedule_subtree_processing(collect_subtree_ids(copied.id, buyer))
    return copied


def _find_affiliate(
    content: Content,
    buyer: _User,
    affiliate_code: str,
) -> Affiliate | None:
    affiliate = Affiliate.objects.select_for_update().filter(
        **content_filter(content),
        affiliate_code=normalize_affiliate_code(affiliate_code),
        status=AffiliateStatus.ACTIVE,
    ).first()
    if affiliate is None:
        logger.info(
            'No active affiliate with code %s for this content',
            affiliate_code,
        )
        return None
    if affiliate.affiliate_user_id == buyer.id:
        logger.warning(
            'Self-referral rejected: user %s used own code %s',
            buyer.username,
            affiliate.affiliate_code,
        )
        return None
    return affiliate


def _attribute_affiliate(
    content: Content,
    purchase: Transaction,
    buyer: _User,
    affiliate_code: str,
) -> CommissionSummary | None:
    """Step 4: commission ledger entries for a referred sale."""
    with db_transaction.atomic():
        affiliate = _find_affiliate(content, buyer, affiliate_code)
        if affiliate is None:
            return None

        price = purchase.amount
        rate = affiliate.commission_rate
        commission_amount = compute_commission(price, rate)
        seller_amount = price - commission_amount
        related = {
            **content_filter(content),
            'item_id': purchase.item_id,
            'status': TransactionStatus.PENDING,
            'payment_flow': PaymentFlow.ADMIN,
            'parent_transaction': purchase,
        }

        # Seller pays the affiliate
        commission_transaction = Transaction.objects.create(
            **related,
            buyer_id=purchase.seller_id,
            seller_id=affiliate.affiliate_user_id,
            amount=commission_amount,
            transaction_type=TransactionType.COMMISSION,
            metadata={
                'affiliate_code': affiliate.affiliate_code,
                'commission_rate': str(rate),
                'original_purchase_amount': str(price),
                'original_buyer': buyer.id,
            },
        )
        # Seller's net share, booked to themselves
        seller_transaction = Transaction.objects.create(
            **related,
            buyer_id=purchase.seller_id,
            seller_id=purchase.seller_id,
            amount=seller_amount,
            transaction_type=TransactionType.SALE,
            metadata={
                'is_affiliate_distribution': True,
                'original_purchase_amount': str(price),
                'commission_deducted': str(commission_amount),
                'original_buyer': buyer.id,
            },
        )

        affiliate_info = {
            'is_affiliate_sale': True,
            'original_amount': str(price),
            'net_amount': str(seller_amount),
            'commission_distribution': [{
                'affiliate_id': affiliate.id,
                'amount': str(commission_amount),
                'commission_rate': str(rate),
            }],
        }
        Transaction.objects.filter(id=purchase.id).update(
            affiliate_info=affiliate_info,
        )

        commission = Commission.objects.create(
            affiliate=affiliate,
            original_transaction=purchase,
            commission_transaction=commission_transaction,
            commission_amount=commission_amount,
            commission_rate=rate,
            status=CommissionStatus.PENDING,
        )
        Affiliate.objects.filter(id=affiliate.id).update(
            total_earnings=F('total_earnings') + commission_amount,
            total_sales=F('total_sales') + 1,
        )

    purchase.affiliate_info = affiliate_info

    logger.info(
        'Commission %s (%s%%) recorded for affiliate %d on purchase %s',
        commission_amount,
        rate,
        affiliate.id,
        purchase.receipt_number,
    )
    return CommissionSummary(
        commission=commission,
        commission_transaction=commission_transaction,
        seller_transaction=seller_transaction,
    )


def settle_purchase(
    content_ref: ContentRef,
    buyer: _User,
    affiliate_code: str | None = None,
    payment: PaymentConfirmation | None = None,
) -> SettlementResult:
    """Settle a confirmed payment for a listing or a monetized link.

    Args:
        content_ref: What was paid for.
        buyer: Paying user.
        affiliate_code: Referral code that came with the purchase.
        payment: Gateway confirmation, stored as transaction metadata.

    Returns:
        Purchase transaction, the buyer's copy for listings and the
        commission entries when an affiliate was credited.

    Raises:
        NotFoundError: If the content does not exist or was deactivated.
        ExpiredError: If a shared link is past its expiry time.
        InvalidInputError: If the content is not for sale.
        SelfPurchaseError: If the buyer owns the content.
        AlreadyPurchasedError: If the buyer already paid for it.
    """
    with db_transaction.atomic():
        content = load_content(content_ref, lock=True)
        _check_eligibility(content, buyer)
        purchase = _record_purchase(content, buyer, payment)
        copied_item = _grant_access(content, buyer)

    logger.info(
        'Purchase %s settled: user %s paid %s for %r',
        purchase.receipt_number,
        buyer.username,
        purchase.amount,
        content_ref,
    )

    commission = None
    if affiliate_code and content.affiliate_enabled:
        try:
            commission = _attribute_affiliate(
                content,
                purchase,
                buyer,
                affiliate_code,
            )
        except Exception:
            logger.exception(
                'Affiliate attribution failed for purchase %s (code %s)',
                purchase.receipt_number,
                affiliate_code,
            )

    return SettlementResult(
        transaction=purchase,
        copied_item=copied_item,
        commission=commission,
    )
