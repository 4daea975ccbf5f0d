"""Business logic for affiliates and their commissions.

An affiliate binds one listing or shared link to a user who promotes it
under a code. Two actors may create the binding: the content owner
inviting someone at a rate of their choice, or a user signing up
themselves at the content's default rate.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Final

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from server.apps.drive.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.marketplace.exceptions import DuplicateAffiliateError
from server.apps.marketplace.infrastructure.codes import (
    generate_affiliate_code,
    normalize_affiliate_code,
)
from server.apps.marketplace.logic.content import (
    Content,
    ContentRef,
    content_filter,
    content_owner_id,
    load_content,
)
from server.apps.marketplace.logic.listing_operations import (
    parse_commission_rate,
)
from server.apps.marketplace.models import (
    Affiliate,
    AffiliateStatus,
    Commission,
    CommissionStatus,
    Transaction,
    TransactionStatus,
)

# User type for Django's dynamic user model
_User = Any

AFFILIATE_ROLE_OWNER: Final = 'owned'
AFFILIATE_ROLE_AFFILIATE: Final = 'affiliate'

_COMMISSION_TRANSITIONS: Final = {  # noqa: WPS407
    CommissionStatus.PENDING: frozenset((
        CommissionStatus.PAID,
        CommissionStatus.FAILED,
    )),
}

# Commission status mirrored onto its ledger transaction
_TRANSACTION_STATUS_FOR: Final = {  # noqa: WPS407
    CommissionStatus.PAID: TransactionStatus.COMPLETED,
    CommissionStatus.FAILED: TransactionStatus.FAILED,
}

logger = logging.getLogger(__name__)


def _default_rate(content: Content) -> Decimal:
    if content.default_commission_rate is not None:
        return content.default_commission_rate
    return Decimal(settings.MARKETPLACE_DEFAULT_COMMISSION_RATE)


def _free_affiliate_code() -> str:
    """Pick a random code no affiliate uses yet.

    Raises:
        ConflictError: If every attempt collided.
    """
    length = settings.MARKETPLACE_AFFILIATE_CODE_LENGTH
    for _ in range(settings.MARKETPLACE_CODE_GENERATION_ATTEMPTS):
        code = generate_affiliate_code(length)
        if not Affiliate.objects.filter(affiliate_code=code).exists():
            return code
    raise ConflictError('Could not generate a unique affiliate code')


def _resolve_rate(
    content: Content,
    requester: _User,
    affiliate_user: _User,
    commission_rate: Any,
) -> Decimal:
    """Check who may register and at which rate.

    Raises:
        ForbiddenError: If the requester may not create the binding.
    """
    owner_id = content_owner_id(content)
    if affiliate_user.id == owner_id:
        raise ForbiddenError('Owners cannot be affiliates of their own content')

    if requester.id == owner_id:
        if commission_rate is None:
            return _default_rate(content)
        return parse_commission_rate(commission_rate)

    if requester.id == affiliate_user.id:
        if not content.affiliate_enabled:
            raise ForbiddenError('Affiliate program not enabled for this content')
        # Self-registration always takes the content's rate
        return _default_rate(content)

    raise ForbiddenError('Not authorized to create this affiliate')


def register_affiliate(
    content_ref: ContentRef,
    requester: _User,
    affiliate_user: _User,
    commission_rate: Any = None,
) -> Affiliate:
    """Bind content to an affiliate user under a fresh code.

    Args:
        content_ref: Listing or shared link to promote.
        requester: Acting user, the content owner or the affiliate.
        affiliate_user: User who will earn commission.
        commission_rate: Rate in percent, honoured for owner invites only.

    Returns:
        Created affiliate.

    Raises:
        NotFoundError: If the content does not exist.
        ForbiddenError: If the requester may not create the binding.
        InvalidInputError: If the rate is out of range.
        DuplicateAffiliateError: If the binding already exists.
    """
    if commission_rate is not None:
        parse_commission_rate(commission_rate)

    content = load_content(content_ref)
    rate = _resolve_rate(content, requester, affiliate_user, commission_rate)
    owner_id = content_owner_id(content)
    binding = {
        **content_filter(content),
        'owner_id': owner_id,
        'affiliate_user': affiliate_user,
    }

    if Affiliate.objects.filter(**binding).exists():
        raise DuplicateAffiliateError()

    # A concurrent registration may take the code or the binding
    for _ in range(settings.MARKETPLACE_CODE_GENERATION_ATTEMPTS):
        try:
            with transaction.atomic():
                affiliate = Affiliate.objects.create(
                    **binding,
                    commission_rate=rate,
                    affiliate_code=_free_affiliate_code(),
                    status=AffiliateStatus.ACTIVE,
                )
        except IntegrityError:
            if Affiliate.objects.filter(**binding).exists():
                raise DuplicateAffiliateError() from None
            logger.info('Affiliate code collided, generating another one')
            continue

        logger.info(
            'Affiliate %s registered for user %s at %s%% (ID: %d)',
            affiliate.affiliate_code,
            affiliate_user.username,
            rate,
            affiliate.id,
        )
        return affiliate

    raise ConflictError('Could not generate a unique affiliate code')


def get_affiliate_for_user(affiliate_id: int, user: _User) -> Affiliate:
    """Get an affiliate visible to the content owner or the affiliate.

    Raises:
        NotFoundError: If the affiliate does not exist.
        ForbiddenError: If the user is neither owner nor affiliate.
    """
    affiliate = Affiliate.objects.select_related(
        'listing',
        'shared_link',
        'owner',
        'affiliate_user',
    ).filter(id=affiliate_id).first()
    if affiliate is None:
        raise NotFoundError('Affiliate not found')
    if user.id not in {affiliate.owner_id, affiliate.affiliate_user_id}:
        raise ForbiddenError('Not authorized to view this affiliate')
    return affiliate


def list_affiliates(user: _User, role: str | None = None) -> QuerySet[Affiliate]:
    """Affiliates of the user's content, the user's own affiliations or both.

    Args:
        user: User to list for.
        role: 'owned', 'affiliate', or None for both.

    Returns:
        QuerySet of affiliates, newest first.
    """
    if role == AFFILIATE_ROLE_OWNER:
        condition = Q(owner=user)
    elif role == AFFILIATE_ROLE_AFFILIATE:
        condition = Q(affiliate_user=user)
    else:
        condition = Q(owner=user) | Q(affiliate_user=user)
    return Affiliate.objects.filter(condition).select_related(
        'listing',
        'shared_link',
        'owner',
        'affiliate_user',
    )


def get_active_affiliate_by_code(code: str) -> Affiliate:
    """Look up an active affiliate by code, ignoring case.

    Raises:
        NotFoundError: If no active affiliate uses the code.
    """
    affiliate = Affiliate.objects.select_related(
        'listing',
        'shared_link',
        'affiliate_user',
    ).filter(
        affiliate_code=normalize_affiliate_code(code),
        status=AffiliateStatus.ACTIVE,
    ).first()
    if affiliate is None:
        raise NotFoundError('Affiliate code not found or inactive')
    return affiliate


def _get_owned_affiliate(affiliate_id: int, requester: _User) -> Affiliate:
    affiliate = Affiliate.objects.select_for_update().filter(
        id=affiliate_id,
    ).first()
    if affiliate is None:
        raise NotFoundError('Affiliate not found')
    if affiliate.owner_id != requester.id:
        raise ForbiddenError('Only the content owner can modify this affiliate')
    return affiliate


def update_affiliate(
    affiliate_id: int,
    requester: _User,
    commission_rate: Any = None,
    status: str | None = None,
) -> Affiliate:
    """Change an affiliate's rate or status.

    Commissions already recorded keep the rate they were created with.

    Raises:
        NotFoundError: If the affiliate does not exist.
        ForbiddenError: If the requester is not the content owner.
        InvalidInputError: If the rate or status is invalid.
    """
    update_fields = []
    rate = None
    if commission_rate is not None:
        rate = parse_commission_rate(commission_rate)
    if status is not None and status not in AffiliateStatus.values:
        raise InvalidInputError('Invalid status')

    with transaction.atomic():
        affiliate = _get_owned_affiliate(affiliate_id, requester)
        if rate is not None:
            affiliate.commission_rate = rate
            update_fields.append('commission_rate')
        if status is not None:
            affiliate.status = status
            update_fields.append('status')
        if update_fields:
            affiliate.save(update_fields=[*update_fields, 'updated_at'])

    logger.info(
        'Affiliate %d updated (%s)',
        affiliate_id,
        ', '.join(update_fields) or 'no changes',
    )
    return affiliate


def delete_affiliate(affiliate_id: int, requester: _User) -> None:
    """Remove an affiliate binding, its commissions stay on record.

    Raises:
        NotFoundError: If the affiliate does not exist.
        ForbiddenError: If the requester is not the content owner.
    """
    with transaction.atomic():
        affiliate = _get_owned_affiliate(affiliate_id, requester)
        affiliate.delete()

    logger.info('Affiliate %d deleted by user %s', affiliate_id, requester.username)


def update_commission_status(
    commission_id: int,
    requester: _User,
    status: str,
    paid_at: datetime | None = None,
) -> Commission:
    """Settle a pending commission as paid or failed.

    Args:
        commission_id: Commission to update.
        requester: Acting user, must own the content that was sold.
        status: 'paid' or 'failed'.
        paid_at: Payout time, defaults to now for paid commissions.

    Returns:
        Updated commission.

    Raises:
        NotFoundError: If the commission does not exist.
        ForbiddenError: If the requester does not own the content.
        InvalidInputError: If the transition is not allowed.
    """
    if status not in CommissionStatus.values:
        raise InvalidInputError('Invalid status')

    with transaction.atomic():
        commission = Commission.objects.select_for_update().select_related(
            'original_transaction',
        ).filter(id=commission_id).first()
        if commission is None:
            raise NotFoundError('Commission not found')
        if commission.original_transaction.seller_id != requester.id:
            raise ForbiddenError('Not authorized to modify this commission')

        allowed = _COMMISSION_TRANSITIONS.get(commission.status, frozenset())
        if status not in allowed:
            raise InvalidInputError(
                f'Cannot change commission from {commission.status} to {status}',
            )

        commission.status = status
        if status == CommissionStatus.PAID:
            commission.paid_at = paid_at or timezone.now()
        commission.save(update_fields=['status', 'paid_at', 'updated_at'])

        if commission.commission_transaction_id is not None:
            Transaction.objects.filter(
                id=commission.commission_transaction_id,
            ).update(
                status=_TRANSACTION_STATUS_FOR[status],
                updated_at=timezone.now(),
            )

    logger.info('Commission %d marked %s', commission_id, status)
    return commission
