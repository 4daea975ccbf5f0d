"""Business logic for single item operations."""

import logging
from typing import TYPE_CHECKING, Any, BinaryIO

from django.core.files.base import File as DjangoFile
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.db.models import QuerySet

from server.apps.drive.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.infrastructure.indexing import schedule_processing
from server.apps.drive.infrastructure.metadata import (
    build_storage_key,
    detect_mime_type,
    get_file_size,
    validate_item_name,
)
from server.apps.drive.models import ContentSource, Item, ItemType

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def get_item(item_id: int, owner: _User) -> Item:
    """Get an item owned by the user.

    Args:
        item_id: ID of the item.
        owner: Expected owner.

    Returns:
        Item instance.

    Raises:
        NotFoundError: If the item does not exist or belongs to someone else.
    """
    try:
        return Item.objects.get(id=item_id, owner=owner)
    except Item.DoesNotExist:
        raise NotFoundError('Item not found') from None


def get_parent_folder(
    owner: _User,
    parent_id: int | None,
    *,
    lock: bool = False,
) -> Item | None:
    """Validate a prospective parent folder.

    Args:
        owner: User who must own the folder.
        parent_id: Folder ID, None for the top level.
        lock: Take a row lock on the folder (inside an atomic block).

    Returns:
        Folder instance, or None for the top level.

    Raises:
        NotFoundError: If the folder does not exist or is not owned.
        InvalidInputError: If the target is not a folder.
    """
    if parent_id is None:
        return None

    queryset = Item.objects.select_for_update() if lock else Item.objects
    try:
        parent = queryset.get(id=parent_id, owner=owner)
    except Item.DoesNotExist:
        raise NotFoundError('Parent folder not found') from None

    if not parent.is_folder:
        raise InvalidInputError('Invalid parent folder')
    return parent


def _sibling_conflict(name: str) -> ConflictError:
    return ConflictError(f'An item named "{name}" already exists here')


def create_folder(owner: _User, name: str, parent_id: int | None = None) -> Item:
    """Create a folder.

    Args:
        owner: Owner of the new folder.
        name: Folder name.
        parent_id: Parent folder ID, None for the top level.

    Returns:
        Created folder.

    Raises:
        ConflictError: If a sibling with the same name exists.
    """
    name = validate_item_name(name)
    try:
        with transaction.atomic():
            get_parent_folder(owner, parent_id)
            folder = Item.objects.create(
                name=name,
                item_type=ItemType.FOLDER,
                parent_id=parent_id,
                owner=owner,
            )
    except IntegrityError as error:
        raise _sibling_conflict(name) from error

    logger.info('Folder created: %s (ID: %d)', name, folder.id)
    return folder


def upload_file(
    owner: _User,
    name: str,
    file_obj: BinaryIO | DjangoFile,
    parent_id: int | None = None,
) -> Item:
    """Upload file content to storage and create its item.

    Transaction safety: Upload to storage first, then create DB record.
    If the DB transaction fails, the uploaded blob is deleted again.

    Args:
        owner: Owner of the file.
        name: Item name, also used to guess the MIME type.
        file_obj: File-like object to upload.
        parent_id: Parent folder ID, None for the top level.

    Returns:
        Created file item.

    Raises:
        ConflictError: If a sibling with the same name exists.
        Exception: If the upload itself fails.
    """
    name = validate_item_name(name)
    get_parent_folder(owner, parent_id)

    mime_type = detect_mime_type(name)
    file_size = get_file_size(file_obj)
    storage = _get_storage()

    # Step 1: Upload to storage first
    saved_name = storage.save(build_storage_key(owner.id, name), file_obj)

    # Step 2: Create database record (in transaction)
    try:
        with transaction.atomic():
            item = Item.objects.create(
                name=name,
                item_type=ItemType.FILE,
                parent_id=parent_id,
                owner=owner,
                size=file_size,
                mime_type=mime_type,
                url=storage.url(saved_name),
                content_source=ContentSource.USER_UPLOAD,
            )
            schedule_processing(item)
    except IntegrityError as error:
        storage.rollback_upload(saved_name)
        raise _sibling_conflict(name) from error
    except Exception:
        logger.exception(
            'Database transaction failed, rolling back storage upload: %s',
            saved_name,
        )
        storage.rollback_upload(saved_name)
        raise

    logger.info('File item created: %s (ID: %d)', name, item.id)
    return item


def create_file_from_url(  # noqa: WPS211
    owner: _User,
    name: str,
    url: str,
    size: int = 0,
    mime_type: str = '',
    parent_id: int | None = None,
) -> Item:
    """Register a file whose content already lives at a url.

    Args:
        owner: Owner of the file.
        name: Item name.
        url: Location of the content.
        size: Size in bytes.
        mime_type: MIME type, may be empty.
        parent_id: Parent folder ID, None for the top level.

    Returns:
        Created file item.

    Raises:
        InvalidInputError: If the url is missing or the size negative.
        ConflictError: If a sibling with the same name exists.
    """
    name = validate_item_name(name)
    if not url:
        raise InvalidInputError('Either file or URL must be provided')
    if size < 0:
        raise InvalidInputError('Size cannot be negative')

    try:
        with transaction.atomic():
            get_parent_folder(owner, parent_id)
            item = Item.objects.create(
                name=name,
                item_type=ItemType.FILE,
                parent_id=parent_id,
                owner=owner,
                size=size,
                mime_type=mime_type,
                url=url,
            )
            schedule_processing(item)
    except IntegrityError as error:
        raise _sibling_conflict(name) from error

    logger.info('File item registered from url: %s (ID: %d)', name, item.id)
    return item


def list_children(owner: _User, parent_id: int | None = None) -> QuerySet[Item]:
    """List the direct children of a folder.

    Args:
        owner: Owner of the folder.
        parent_id: Folder ID, None for the top level.

    Returns:
        QuerySet of items, folders first, then by name.
    """
    get_parent_folder(owner, parent_id)
    return Item.objects.filter(
        owner=owner,
        parent_id=parent_id,
    ).order_by('-item_type', 'name')


def get_item_path(item_id: int, owner: _User) -> list[Item]:
    """Build the breadcrumb from the top level down to an item.

    Args:
        item_id: ID of the item.
        owner: Owner of the item.

    Returns:
        Items from the top-level ancestor to the item itself.

    Raises:
        NotFoundError: If the item does not exist or is not owned.
    """
    current: Item | None = get_item(item_id, owner)
    path: list[Item] = []
    visited: set[int] = set()

    while current is not None and current.id not in visited:
        visited.add(current.id)
        path.append(current)
        if current.parent_id is None:
            break
        current = Item.objects.filter(
            id=current.parent_id,
            owner=owner,
        ).first()

    path.reverse()
    return path


def ensure_user_folder(owner: _User, name: str) -> Item:
    """Get or create a top-level folder of the user.

    Safe under concurrent calls: the unique sibling constraint makes
    the losing insert fall back to the existing row.

    Args:
        owner: Owner of the folder.
        name: Folder name (e.g. 'marketplace').

    Returns:
        Folder instance.

    Raises:
        ConflictError: If a top-level file already uses the name.
    """
    folder, created = Item.objects.get_or_create(
        owner=owner,
        parent=None,
        name=name,
        defaults={'item_type': ItemType.FOLDER},
    )
    if not folder.is_folder:
        raise ConflictError(f'"{name}" exists and is not a folder')
    if created:
        logger.info(
            'Created folder %s for user %s (ID: %d)',
            name,
            owner.username,
            folder.id,
        )
    return folder
