"""Hand-off of file items to the external AI indexer.

The indexer itself lives outside this project. It subscribes to
``file_ready_for_indexing`` and writes ``AIChunk`` rows back. Dispatch
happens after commit and is fire-and-forget: failures are logged, never
raised into the operation that queued the file.
"""

import logging
from collections.abc import Iterable
from functools import partial

from django.conf import settings
from django.db import transaction

from server.apps.drive.models import AIStatus, Item, ItemType
from server.apps.drive.signals import file_ready_for_indexing

logger = logging.getLogger(__name__)


def is_processable(mime_type: str) -> bool:
    """Check whether the indexer understands a MIME type.

    Args:
        mime_type: MIME type of a file item.

    Returns:
        True if the file should be indexed.
    """
    return mime_type in settings.DRIVE_AI_PROCESSABLE_MIME_TYPES


def schedule_processing(item: Item) -> bool:
    """Queue a single file item for indexing.

    Args:
        item: File item to index.

    Returns:
        True if the item was queued, False if it is not indexable.
    """
    if not item.is_file or not is_processable(item.mime_type):
        logger.debug(
            'Skipping AI indexing for item %d (%s)',
            item.id,
            item.mime_type or 'no mime type',
        )
        return False

    Item.objects.filter(id=item.id).update(ai_status=AIStatus.PENDING)
    item.ai_status = AIStatus.PENDING
    transaction.on_commit(partial(process_file, item.id))
    logger.info('Queued item %d for AI indexing', item.id)
    return True


def schedule_subtree_processing(item_ids: Iterable[int]) -> int:
    """Queue every indexable file among the given items.

    Args:
        item_ids: IDs of items, typically a freshly copied subtree.

    Returns:
        Number of items queued.
    """
    files = Item.objects.filter(
        id__in=list(item_ids),
        item_type=ItemType.FILE,
        mime_type__in=settings.DRIVE_AI_PROCESSABLE_MIME_TYPES,
    )
    return sum(1 for file_item in files if schedule_processing(file_item))


def process_file(item_id: int) -> None:
    """Notify the indexer about a file.

    Receivers run synchronously in the sending thread; their errors are
    collected by ``send_robust`` and logged here.

    Args:
        item_id: ID of the file item.
    """
    responses = file_ready_for_indexing.send_robust(
        sender=Item,
        item_id=item_id,
    )
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                'AI indexer %r failed for item %d: %s',
                receiver,
                item_id,
                response,
            )
