"""References to sellable content.

Operations that accept either a listing or a shared link take a
``ContentRef``. The variant decides which table is read, so a request can
never name both or neither.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, TypeAlias, final

from server.apps.drive.exceptions import NotFoundError
from server.apps.marketplace.models import Listing, SharedLink


@final
@dataclass(frozen=True, slots=True)
class ListingRef:
    """Listing addressed by primary key."""

    listing_id: int


@final
@dataclass(frozen=True, slots=True)
class SharedLinkRef:
    """Shared link addressed by its public link id."""

    link_id: str


ContentRef: TypeAlias = ListingRef | SharedLinkRef
Content: TypeAlias = Listing | SharedLink


def load_content(ref: ContentRef, *, lock: bool = False) -> Content:
    """Fetch the listing or shared link a reference points at.

    Args:
        ref: Content reference.
        lock: Take a row lock (inside an atomic block).

    Returns:
        Listing or SharedLink with the item preloaded.

    Raises:
        NotFoundError: If the content does not exist.
    """
    if isinstance(ref, ListingRef):
        listings = Listing.objects.select_related('item')
        if lock:
            listings = listings.select_for_update(of=('self',))
        try:
            return listings.get(id=ref.listing_id)
        except Listing.DoesNotExist:
            raise NotFoundError('Listing not found') from None

    links = SharedLink.objects.select_related('item')
    if lock:
        links = links.select_for_update(of=('self',))
    try:
        return links.get(link_id=ref.link_id)
    except SharedLink.DoesNotExist:
        raise NotFoundError('Shared link not found') from None


def content_owner_id(content: Content) -> int:
    """ID of the user who owns the content."""
    if isinstance(content, Listing):
        return content.seller_id
    return content.owner_id


def content_price(content: Content) -> Decimal:
    """Price of the content, zero for free links."""
    return content.price or Decimal(0)


def content_filter(content: Content) -> dict[str, Any]:
    """Lookup kwargs selecting rows bound to the content."""
    if isinstance(content, Listing):
        return {'listing': content}
    return {'shared_link': content}
