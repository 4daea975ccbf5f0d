"""Tests for affiliate business logic."""

import re
from decimal import Decimal
from unittest.mock import patch

import pytest

from server.apps.drive.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.marketplace.exceptions import DuplicateAffiliateError
from server.apps.marketplace.logic import affiliate_operations
from server.apps.marketplace.logic.affiliate_operations import (
    AFFILIATE_ROLE_AFFILIATE,
    AFFILIATE_ROLE_OWNER,
    delete_affiliate,
    get_active_affiliate_by_code,
    get_affiliate_for_user,
    list_affiliates,
    register_affiliate,
    update_affiliate,
    update_commission_status,
)
from server.apps.marketplace.logic.content import ListingRef, SharedLinkRef
from server.apps.marketplace.logic.listing_operations import (
    create_listing,
    update_listing,
)
from server.apps.marketplace.logic.settlement import settle_purchase
from server.apps.marketplace.models import (
    Affiliate,
    AffiliateStatus,
    Commission,
    CommissionStatus,
    Transaction,
    TransactionStatus,
)


@pytest.fixture
def affiliate(listing, promoter):
    """Self-registered affiliate of the listing.

    Returns:
        Affiliate instance.
    """
    return register_affiliate(ListingRef(listing.id), promoter, promoter)


@pytest.fixture
def commission(listing, buyer, affiliate):
    """Pending commission from one referred sale.

    Returns:
        Commission instance.
    """
    settle_purchase(
        ListingRef(listing.id),
        buyer,
        affiliate_code=affiliate.affiliate_code,
    )
    return Commission.objects.get()


@pytest.mark.django_db
class TestRegisterAffiliate:
    """Tests for register_affiliate."""

    def test_self_registration_uses_default_rate(self, affiliate, listing, promoter):
        """Test self-registered affiliates get the content's rate."""
        assert affiliate.commission_rate == 20
        assert affiliate.owner == listing.seller
        assert affiliate.affiliate_user == promoter
        assert affiliate.listing == listing
        assert affiliate.shared_link is None
        assert affiliate.status == AffiliateStatus.ACTIVE
        assert affiliate.total_sales == 0
        assert re.fullmatch('[A-Z0-9]{8}', affiliate.affiliate_code)

    def test_self_registration_ignores_requested_rate(self, listing, promoter):
        """Test affiliates cannot pick their own rate."""
        affiliate = register_affiliate(
            ListingRef(listing.id),
            promoter,
            promoter,
            commission_rate=90,
        )

        assert affiliate.commission_rate == 20

    def test_owner_invite_with_rate(self, listing, promoter):
        """Test owners choose the rate when inviting."""
        affiliate = register_affiliate(
            ListingRef(listing.id),
            listing.seller,
            promoter,
            commission_rate='35.5',
        )

        assert affiliate.commission_rate == Decimal('35.5')

    def test_owner_invite_without_program(self, seller, promoter, make_file):
        """Test owners may invite even with self-registration disabled."""
        item = make_file(seller, 'guide.pdf')
        listing = create_listing(seller, item.id, 'Guide', '', '3.00')

        affiliate = register_affiliate(ListingRef(listing.id), seller, promoter)

        assert affiliate.commission_rate == 10

    def test_self_registration_requires_program(self, listing, promoter):
        """Test users cannot sign up when affiliates are disabled."""
        update_listing(listing.id, listing.seller, affiliate_enabled=False)

        with pytest.raises(ForbiddenError):
            register_affiliate(ListingRef(listing.id), promoter, promoter)

    def test_third_party_cannot_register(self, listing, promoter, stranger):
        """Test users cannot register someone else."""
        with pytest.raises(ForbiddenError):
            register_affiliate(ListingRef(listing.id), stranger, promoter)

    def test_owner_cannot_be_affiliate(self, listing):
        """Test owners cannot earn commission on their own content."""
        with pytest.raises(ForbiddenError):
            register_affiliate(
                ListingRef(listing.id),
                listing.seller,
                listing.seller,
            )

    def test_duplicate(self, affiliate, listing, promoter):
        """Test a user can promote the same content once."""
        with pytest.raises(DuplicateAffiliateError):
            register_affiliate(ListingRef(listing.id), promoter, promoter)

    @pytest.mark.parametrize('rate', [-1, 101, 'lots'])
    def test_invalid_rate(self, listing, promoter, rate):
        """Test rates outside 0-100 are rejected."""
        with pytest.raises(InvalidInputError):
            register_affiliate(
                ListingRef(listing.id),
                listing.seller,
                promoter,
                commission_rate=rate,
            )

    def test_shared_link_affiliate(self, monetized_link, promoter):
        """Test links can be promoted like listings."""
        affiliate = register_affiliate(
            SharedLinkRef(monetized_link.link_id),
            promoter,
            promoter,
        )

        assert affiliate.shared_link == monetized_link
        assert affiliate.listing is None
        assert affiliate.content == monetized_link
        assert affiliate.commission_rate == 10

    def test_same_user_for_listing_and_link(self, listing, monetized_link, promoter):
        """Test one user may promote several pieces of content."""
        first = register_affiliate(ListingRef(listing.id), promoter, promoter)
        second = register_affiliate(
            SharedLinkRef(monetized_link.link_id),
            promoter,
            promoter,
        )

        assert first.affiliate_code != second.affiliate_code

    def test_missing_content(self, promoter):
        """Test unknown content raises NotFoundError."""
        with pytest.raises(NotFoundError):
            register_affiliate(SharedLinkRef('0' * 16), promoter, promoter)


@pytest.mark.django_db
class TestAffiliateQueries:
    """Tests for affiliate lookups."""

    def test_visible_to_both_parties(self, affiliate, listing, promoter):
        """Test owner and affiliate can both read the binding."""
        assert get_affiliate_for_user(affiliate.id, listing.seller) == affiliate
        assert get_affiliate_for_user(affiliate.id, promoter) == affiliate

    def test_hidden_from_others(self, affiliate, stranger):
        """Test unrelated users are refused."""
        with pytest.raises(ForbiddenError):
            get_affiliate_for_user(affiliate.id, stranger)

    def test_missing(self, promoter):
        """Test unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            get_affiliate_for_user(999999, promoter)

    def test_list_by_role(self, affiliate, listing, promoter):
        """Test role filters split owned and promoted content."""
        seller = listing.seller

        assert list(list_affiliates(seller, AFFILIATE_ROLE_OWNER)) == [affiliate]
        assert not list_affiliates(seller, AFFILIATE_ROLE_AFFILIATE).exists()
        assert list(list_affiliates(promoter, AFFILIATE_ROLE_AFFILIATE)) == [affiliate]
        assert list(list_affiliates(promoter)) == [affiliate]

    def test_lookup_by_code_ignores_case(self, affiliate):
        """Test codes match regardless of case and padding."""
        found = get_active_affiliate_by_code(f' {affiliate.affiliate_code.lower()} ')

        assert found == affiliate

    def test_lookup_skips_inactive(self, affiliate, listing):
        """Test inactive codes are not found."""
        update_affiliate(affiliate.id, listing.seller, status='inactive')

        with pytest.raises(NotFoundError):
            get_active_affiliate_by_code(affiliate.affiliate_code)


@pytest.mark.django_db
class TestUpdateAffiliate:
    """Tests for update_affiliate and delete_affiliate."""

    def test_owner_changes_rate(self, affiliate, listing):
        """Test the owner can adjust the rate."""
        updated = update_affiliate(affiliate.id, listing.seller, commission_rate=30)

        assert updated.commission_rate == 30
        affiliate.refresh_from_db()
        assert affiliate.commission_rate == 30

    def test_affiliate_cannot_change_own_rate(self, affiliate, promoter):
        """Test affiliates cannot raise their own rate."""
        with pytest.raises(ForbiddenError):
            update_affiliate(affiliate.id, promoter, commission_rate=90)

    def test_invalid_status(self, affiliate, listing):
        """Test unknown statuses are rejected."""
        with pytest.raises(InvalidInputError):
            update_affiliate(affiliate.id, listing.seller, status='banned')

    def test_delete_keeps_commissions(self, commission, listing):
        """Test recorded commissions survive their affiliate."""
        delete_affiliate(commission.affiliate_id, listing.seller)

        commission.refresh_from_db()
        assert commission.affiliate is None
        assert commission.commission_amount == 2

    def test_delete_by_affiliate_forbidden(self, affiliate, promoter):
        """Test only the owner removes bindings."""
        with pytest.raises(ForbiddenError):
            delete_affiliate(affiliate.id, promoter)


@pytest.mark.django_db
class TestUpdateCommissionStatus:
    """Tests for update_commission_status."""

    def test_mark_paid(self, commission, listing):
        """Test paying out completes the commission transaction."""
        updated = update_commission_status(
            commission.id,
            listing.seller,
            CommissionStatus.PAID,
        )

        assert updated.status == CommissionStatus.PAID
        assert updated.paid_at is not None
        commission_tx = Transaction.objects.get(id=commission.commission_transaction_id)
        assert commission_tx.status == TransactionStatus.COMPLETED

    def test_mark_failed(self, commission, listing):
        """Test failed payouts fail the commission transaction."""
        updated = update_commission_status(
            commission.id,
            listing.seller,
            CommissionStatus.FAILED,
        )

        assert updated.paid_at is None
        commission_tx = Transaction.objects.get(id=commission.commission_transaction_id)
        assert commission_tx.status == TransactionStatus.FAILED

    def test_settled_commission_is_final(self, commission, listing):
        """Test paid commissions cannot change again."""
        update_commission_status(commission.id, listing.seller, CommissionStatus.PAID)

        with pytest.raises(InvalidInputError):
            update_commission_status(
                commission.id,
                listing.seller,
                CommissionStatus.FAILED,
            )

    def test_only_seller_updates(self, commission, promoter):
        """Test affiliates cannot mark their own commission paid."""
        with pytest.raises(ForbiddenError):
            update_commission_status(commission.id, promoter, CommissionStatus.PAID)

    def test_invalid_status(self, commission, listing):
        """Test unknown statuses are rejected."""
        with pytest.raises(InvalidInputError):
            update_commission_status(commission.id, listing.seller, 'refunded')

    def test_missing(self, listing):
        """Test unknown commissions raise NotFoundError."""
        with pytest.raises(NotFoundError):
            update_commission_status(999999, listing.seller, CommissionStatus.PAID)


@pytest.mark.django_db
class TestRegistrationRaces:
    """Tests for registrations colliding at insert time."""

    def test_code_taken_concurrently_is_regenerated(self, affiliate, listing, stranger):
        """Test a code grabbed between lookup and insert is replaced."""
        with patch.object(
            affiliate_operations,
            '_free_affiliate_code',
            side_effect=[affiliate.affiliate_code, 'FRESH001'],
        ):
            second = register_affiliate(ListingRef(listing.id), stranger, stranger)

        assert second.affiliate_code == 'FRESH001'
        assert Affiliate.objects.count() == 2

    def test_code_collisions_exhaust_attempts(self, affiliate, listing, stranger):
        """Test registration gives up when every code collides."""
        with patch.object(
            affiliate_operations,
            '_free_affiliate_code',
            return_value=affiliate.affiliate_code,
        ):
            with pytest.raises(ConflictError):
                register_affiliate(ListingRef(listing.id), stranger, stranger)

        assert Affiliate.objects.count() == 1

    def test_binding_created_concurrently(self, affiliate, listing, promoter):
        """Test a binding inserted after the duplicate check is reported."""
        real_filter = Affiliate.objects.filter
        calls = []

        def filter_missing_first(*args, **kwargs):
            queryset = real_filter(*args, **kwargs)
            calls.append(kwargs)
            return queryset.none() if len(calls) == 1 else queryset

        with patch.object(
            Affiliate.objects,
            'filter',
            side_effect=filter_missing_first,
        ):
            with pytest.raises(DuplicateAffiliateError):
                register_affiliate(ListingRef(listing.id), promoter, promoter)

        assert Affiliate.objects.count() == 1
