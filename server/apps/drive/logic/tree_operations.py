"""Business logic for operations on whole item subtrees.

Trees are walked iteratively over ``parent`` links, one query per level
(or per batch of parents), so deep trees never grow the Python stack.
Each top-level operation runs in a single atomic block.
"""

import logging
from collections import deque
from collections.abc import Iterator
from functools import partial
from typing import Any, Final

from django.conf import settings
from django.db import IntegrityError, transaction

from server.apps.drive.exceptions import (
    ConflictError,
    CyclicMoveError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.infrastructure.metadata import validate_item_name
from server.apps.drive.logic.item_operations import (
    _get_storage,
    get_parent_folder,
)
from server.apps.drive.models import AIChunk, ContentSource, Item, ItemType

# User type for Django's dynamic user model
_User = Any

DEFAULT_COPY_SUFFIX: Final = ' (Shared)'

# Room kept for the numeric disambiguator, e.g. ' (12345)'
_DISAMBIGUATOR_RESERVE: Final = 10
_NAME_MAX_LENGTH: Final = 255
_MAX_NAME_ATTEMPTS: Final = 5

logger = logging.getLogger(__name__)


def _candidate_names(base_name: str, suffix: str) -> Iterator[str]:
    """Yield 'name', 'name (1)', 'name (2)', ... within the length limit.

    The base is shortened only when a candidate would not fit otherwise.
    """
    counter = 0
    while True:
        disambiguator = f' ({counter})' if counter else ''
        room = _NAME_MAX_LENGTH - len(suffix) - len(disambiguator)
        yield f'{base_name[:room]}{suffix}{disambiguator}'
        counter += 1


def _unique_name(
    base_name: str,
    suffix: str,
    parent_id: int | None,
    owner: _User,
) -> str:
    """Find a sibling name that is still free under the parent.

    Args:
        base_name: Name of the source item.
        suffix: Text appended before any disambiguator.
        parent_id: Parent of the new item, None for the top level.
        owner: Owner of the new item.

    Returns:
        Name with no sibling of the same owner under the parent.
    """
    # Every candidate up to the reserve starts with this prefix
    prefix = base_name[:_NAME_MAX_LENGTH - len(suffix) - _DISAMBIGUATOR_RESERVE]
    taken = set(
        Item.objects.filter(
            parent_id=parent_id,
            owner=owner,
            name__startswith=prefix,
        ).values_list('name', flat=True),
    )
    return next(
        candidate
        for candidate in _candidate_names(base_name, suffix)
        if candidate not in taken
    )


def _create_copy(  # noqa: WPS211
    source: Item,
    parent_id: int | None,
    owner: _User,
    suffix: str,
    content_source: str,
) -> Item:
    """Create one copied node with a deduplicated name.

    A concurrent copy may take the chosen name between lookup and insert.
    The insert runs in a savepoint so the unique violation can be retried.
    """
    for _ in range(_MAX_NAME_ATTEMPTS):
        name = _unique_name(source.name, suffix, parent_id, owner)
        try:
            with transaction.atomic():
                return Item.objects.create(
                    name=name,
                    item_type=source.item_type,
                    parent_id=parent_id,
                    owner=owner,
                    size=source.size if source.is_file else None,
                    mime_type=source.mime_type,
                    url=source.url,
                    content_source=content_source,
                )
        except IntegrityError:
            logger.info(
                'Name %s was taken concurrently under parent %s, retrying',
                name,
                parent_id,
            )
    raise ConflictError(f'Could not find a free name for "{source.name}"')


def copy_subtree(
    source_item_id: int,
    destination_parent_id: int | None,
    owner: _User,
    name_suffix: str = DEFAULT_COPY_SUFFIX,
    content_source: str = ContentSource.SHARED_LINK,
) -> Item:
    """Copy an item and everything below it into another user's tree.

    Breadth-first: children of up to ``DRIVE_COPY_BATCH_SIZE`` parents are
    fetched per query. The root and every folder get ``name_suffix``
    and, on collision, a numeric disambiguator ('Docs (Shared) (1)').
    Files inside copied folders keep their names. Copies reference the
    same blobs as the originals.

    Args:
        source_item_id: Root of the subtree to copy (any owner).
        destination_parent_id: Folder of ``owner`` receiving the copy,
            None for the top level.
        owner: Owner of the copies.
        name_suffix: Suffix for the root and folder names.
        content_source: Origin recorded on every copy.

    Returns:
        The copy of the root item.

    Raises:
        NotFoundError: If the source or destination does not exist.
        InvalidInputError: If the destination is not a folder.
    """
    batch_size = settings.DRIVE_COPY_BATCH_SIZE

    with transaction.atomic():
        try:
            source = Item.objects.get(id=source_item_id)
        except Item.DoesNotExist:
            raise NotFoundError('Original item not found') from None
        get_parent_folder(owner, destination_parent_id, lock=True)

        root_copy = _create_copy(
            source,
            destination_parent_id,
            owner,
            name_suffix,
            content_source,
        )
        created_ids = {root_copy.id}

        # (original folder id, id of its copy)
        queue: deque[tuple[int, int]] = deque()
        if source.is_folder:
            queue.append((source.id, root_copy.id))

        while queue:
            batch = dict(
                queue.popleft() for _ in range(min(batch_size, len(queue)))
            )
            children = Item.objects.filter(
                parent_id__in=list(batch),
            ).order_by('id')

            for child in children:
                # Copying into the source's own subtree
                if child.id in created_ids:
                    continue
                child_copy = _create_copy(
                    child,
                    batch[child.parent_id],
                    owner,
                    name_suffix if child.is_folder else '',
                    content_source,
                )
                created_ids.add(child_copy.id)
                if child.is_folder:
                    queue.append((child.id, child_copy.id))

    logger.info(
        'Copied item %d as %s (ID: %d) for user %s: %d items',
        source_item_id,
        root_copy.name,
        root_copy.id,
        owner.username,
        len(created_ids),
    )
    return root_copy


def collect_subtree_ids(item_id: int, owner: _User) -> list[int]:
    """Collect an item and all of its descendants owned by the user.

    A descendant of another owner is left out together with its branch.

    Args:
        item_id: Root of the subtree.
        owner: Owner whose items are collected.

    Returns:
        IDs, root first, then level by level. Empty if the root is not
        owned by the user.
    """
    root = Item.objects.filter(id=item_id, owner=owner).values_list(
        'id',
        'item_type',
    ).first()
    if root is None:
        return []

    collected = [root[0]]
    seen = {root[0]}
    frontier = [root[0]] if root[1] == ItemType.FOLDER else []

    while frontier:
        children = Item.objects.filter(
            parent_id__in=frontier,
            owner=owner,
        ).values_list('id', 'item_type')

        frontier = []
        for child_id, child_type in children:
            if child_id in seen:
                continue
            seen.add(child_id)
            collected.append(child_id)
            if child_type == ItemType.FOLDER:
                frontier.append(child_id)

    logger.debug('Collected %d items under %d', len(collected), item_id)
    return collected


def is_descendant(source_id: int, target_id: int) -> bool:
    """Check whether target is source itself or lies below it.

    Walks the ancestor chain of the target up to the top level.

    Args:
        source_id: Potential ancestor.
        target_id: Item whose ancestors are inspected.

    Returns:
        True if source_id is target_id or one of its ancestors.
    """
    current: int | None = target_id
    visited: set[int] = set()

    while current is not None and current not in visited:
        if current == source_id:
            return True
        visited.add(current)
        current = Item.objects.filter(id=current).values_list(
            'parent_id',
            flat=True,
        ).first()

    return False


def move_or_rename(
    item_id: int,
    owner: _User,
    new_name: str | None = None,
    new_parent_id: int | None = None,
    *,
    to_root: bool = False,
) -> Item:
    """Rename an item and/or move it under another folder.

    Args:
        item_id: Item to change.
        owner: Acting user, must own the item and the destination.
        new_name: New name, None to keep the current one.
        new_parent_id: Destination folder, None to keep the parent.
        to_root: Move the item to the top level.

    Returns:
        Updated item.

    Raises:
        NotFoundError: If the item or destination is absent or not owned.
        InvalidInputError: If the destination is not a folder or the
            arguments contradict each other.
        CyclicMoveError: If a folder would be moved into its own subtree.
        ConflictError: If the destination already has an item with
            the same name.
    """
    if to_root and new_parent_id is not None:
        raise InvalidInputError('Cannot move to the top level and a folder')

    with transaction.atomic():
        try:
            item = Item.objects.select_for_update().get(id=item_id, owner=owner)
        except Item.DoesNotExist:
            raise NotFoundError('Item not found') from None

        update_fields = []
        reparent = to_root or new_parent_id is not None
        if reparent and new_parent_id != item.parent_id:
            if new_parent_id is not None:
                get_parent_folder(owner, new_parent_id, lock=True)
                if item.is_folder and is_descendant(item.id, new_parent_id):
                    raise CyclicMoveError()
            item.parent_id = new_parent_id
            update_fields.append('parent')

        if new_name is not None:
            name = validate_item_name(new_name)
            if name != item.name:
                item.name = name
                update_fields.append('name')

        if update_fields:
            try:
                with transaction.atomic():
                    item.save(update_fields=[*update_fields, 'updated_at'])
            except IntegrityError as error:
                raise ConflictError(
                    f'An item named "{item.name}" already exists here',
                ) from error

    logger.info(
        'Item %d updated (%s) by user %s',
        item_id,
        ', '.join(update_fields) or 'no changes',
        owner.username,
    )
    return item


def _delete_blobs(urls: list[str]) -> None:
    """Delete blobs after the items are gone (best-effort)."""
    storage = _get_storage()
    failed = [url for url in urls if not storage.delete_blob(url)]
    if failed:
        logger.error(
            'Blob cleanup left %d of %d objects behind',
            len(failed),
            len(urls),
        )


def delete_subtree(item_id: int, owner: _User) -> int:
    """Delete an item, all owned descendants, their AI chunks and blobs.

    AI chunks and items are removed in one atomic block. Blob deletion is
    registered to run after commit and only logs failures. Blobs still
    referenced by surviving items (copies share urls) are kept.

    Args:
        item_id: Root of the subtree.
        owner: Acting user, must own the root.

    Returns:
        Number of deleted items.

    Raises:
        NotFoundError: If the item does not exist or is not owned.
    """
    with transaction.atomic():
        if not Item.objects.select_for_update().filter(
            id=item_id,
            owner=owner,
        ).exists():
            raise NotFoundError('Item not found')

        item_ids = collect_subtree_ids(item_id, owner)
        urls = set(
            Item.objects.filter(
                id__in=item_ids,
                item_type=ItemType.FILE,
            ).exclude(url='').values_list('url', flat=True),
        )

        chunks_deleted, _ = AIChunk.objects.filter(item_id__in=item_ids).delete()
        Item.objects.filter(id__in=item_ids).delete()

        still_used = set(
            Item.objects.filter(url__in=urls).values_list('url', flat=True),
        )
        orphaned_urls = sorted(urls - still_used)
        if orphaned_urls:
            transaction.on_commit(partial(_delete_blobs, orphaned_urls))

    logger.info(
        'Deleted item %d with %d items, %d AI chunks, %d blobs queued',
        item_id,
        len(item_ids),
        chunks_deleted,
        len(orphaned_urls),
    )
    return len(item_ids)
