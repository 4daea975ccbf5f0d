"""Database models for drive app."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_URL_MAX_LENGTH: Final = 2048
_CHOICE_MAX_LENGTH: Final = 32


class ItemType(models.TextChoices):
    """Kind of node in a content tree."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


class ContentSource(models.TextChoices):
    """Where an item came from."""

    USER_UPLOAD = 'user_upload', 'User upload'
    AI_GENERATED = 'ai_generated', 'AI generated'
    MARKETPLACE_PURCHASE = 'marketplace_purchase', 'Marketplace purchase'
    SHARED_LINK = 'shared_link', 'Shared link'


class AIStatus(models.TextChoices):
    """Progress of AI indexing for an item."""

    NONE = 'none', 'None'
    PENDING = 'pending', 'Pending'
    PROCESSING = 'processing', 'Processing'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


@final
class Item(models.Model):
    """File or folder node in a user's content tree.

    Items form a forest through the self-referential ``parent`` link.
    Top-level items have no parent. Sibling names are unique per owner,
    which is what the copy engine's name deduplication relies on.

    File items point at a blob in object storage through ``url``.
    Copies made by purchases or shared links reuse the same url.
    """

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    item_type = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=ItemType.choices,
    )

    # Children of a deleted parent are handled by the tree engine,
    # SET_NULL only keeps rows of another owner from vanishing.
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='items',
        db_index=True,
    )

    size = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='File size in bytes (files only)',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    url = models.CharField(
        max_length=_URL_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Object storage url of the file content',
    )

    content_source = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=ContentSource.choices,
        default=ContentSource.USER_UPLOAD,
    )

    # AI indexing state
    ai_status = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=AIStatus.choices,
        default=AIStatus.NONE,
    )
    ai_chunks_count = models.PositiveIntegerField(default=0)
    ai_text_content = models.TextField(blank=True, default='')
    ai_topics = models.JSONField(default=list, blank=True)
    ai_processed_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Item'  # type: ignore[mutable-override]
        verbose_name_plural = 'Items'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at', '-id']

        indexes: ClassVar[list[models.Index]] = [
            # Directory listing
            models.Index(
                fields=['owner', 'parent'],
                name='drive_owner_parent_idx',
            ),
            models.Index(
                fields=['url'],
                name='drive_url_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # No duplicate sibling names for the same owner
            models.UniqueConstraint(
                fields=['parent', 'name', 'owner'],
                name='drive_parent_name_owner_unique',
            ),
            # NULL parents never collide in SQL, cover top level separately
            models.UniqueConstraint(
                fields=['name', 'owner'],
                condition=models.Q(parent__isnull=True),
                name='drive_root_name_owner_unique',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(item_type=ItemType.FOLDER)
                    | models.Q(size__isnull=False)
                ),
                name='drive_file_has_size',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'

    @property
    def is_folder(self) -> bool:
        """Whether the item can have children."""
        return self.item_type == ItemType.FOLDER

    @property
    def is_file(self) -> bool:
        """Whether the item carries file content."""
        return self.item_type == ItemType.FILE


@final
class AIChunk(models.Model):
    """Piece of an item's text with its embedding.

    Produced by the external AI indexer. The tree engine removes chunks
    together with their items.
    """

    item = models.ForeignKey(
        Item,
        on_delete=models.CASCADE,
        related_name='ai_chunks',
        db_index=True,
    )

    text = models.TextField()

    embedding = models.JSONField(default=list)

    chunk_index = models.PositiveIntegerField()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'AI Chunk'  # type: ignore[mutable-override]
        verbose_name_plural = 'AI Chunks'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['item', 'chunk_index']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['item', 'chunk_index'],
                name='drive_chunk_item_index_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.item_id}#{self.chunk_index}'
