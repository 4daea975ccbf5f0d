"""Exceptions for marketplace app."""

from server.apps.drive.exceptions import (
    ConflictError,
    DomainError,
    ForbiddenError,
)


class ExpiredError(DomainError):
    """Raised when a shared link is past its expiry time."""

    status_code = 410
    default_message = 'Link has expired'


class PaymentRequiredError(DomainError):
    """Raised when monetized content is accessed without payment."""

    status_code = 402
    default_message = 'Payment required'


class AlreadyPurchasedError(ConflictError):
    """Raised when the buyer already holds paid access to the content."""

    default_message = 'You have already purchased this item'


class SelfPurchaseError(ForbiddenError):
    """Raised when an owner tries to buy their own content."""

    default_message = 'You cannot purchase your own content'


class DuplicateAffiliateError(ConflictError):
    """Raised when the affiliate binding already exists."""

    default_message = 'Affiliate relationship already exists'


class DuplicateListingError(ConflictError):
    """Raised when an item is already listed for sale."""

    default_message = 'Item is already listed'
