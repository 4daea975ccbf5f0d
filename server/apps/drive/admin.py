"""Django admin configuration for drive app."""


from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.drive.models import AIChunk, AIStatus, Item


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


_AI_STATUS_COLORS = {  # noqa: WPS407
    AIStatus.PENDING: '#ffc107',
    AIStatus.PROCESSING: '#17a2b8',
    AIStatus.COMPLETED: '#28a745',
    AIStatus.FAILED: '#dc3545',
}


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin[Item]):
    """Admin interface for Item model."""

    list_display = [
        'name',
        'item_type',
        'owner',
        'parent',
        'size_display',
        'content_source',
        'ai_status_display',
        'created_at',
    ]

    list_filter = [
        'item_type',
        'content_source',
        'ai_status',
        'created_at',
    ]

    search_fields = [
        'name',
        'url',
        'owner__username',
    ]

    raw_id_fields = ['parent', 'owner']

    readonly_fields = [
        'url',
        'size',
        'mime_type',
        'ai_chunks_count',
        'ai_processed_at',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('Item Information', {
            'fields': ('name', 'item_type', 'owner', 'parent'),
        }),
        ('Content', {
            'fields': ('url', 'size', 'mime_type', 'content_source'),
        }),
        ('AI Indexing', {
            'fields': (
                'ai_status',
                'ai_chunks_count',
                'ai_topics',
                'ai_processed_at',
            ),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    def size_display(self, obj: Item) -> str:
        """Display file size in human-readable format.

        Args:
            obj: Item instance.

        Returns:
            Formatted size string, '-' for folders.
        """
        if obj.size is None:
            return '-'
        return _format_bytes(obj.size)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def ai_status_display(self, obj: Item) -> str:
        """Display AI indexing status with a color.

        Args:
            obj: Item instance.

        Returns:
            HTML formatted status.
        """
        color = _AI_STATUS_COLORS.get(obj.ai_status)
        if color is None:
            return '-'
        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=obj.get_ai_status_display(),
        )
    ai_status_display.short_description = 'AI'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Item]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner', 'parent')


@admin.register(AIChunk)
class AIChunkAdmin(admin.ModelAdmin[AIChunk]):
    """Admin interface for AIChunk model."""

    list_display = [
        'item',
        'chunk_index',
        'text_preview',
        'created_at',
    ]

    search_fields = [
        'item__name',
        'text',
    ]

    raw_id_fields = ['item']

    readonly_fields = ['created_at', 'updated_at']

    def text_preview(self, obj: AIChunk) -> str:
        """First characters of the chunk text."""
        return obj.text[:80]
    text_preview.short_description = 'Text'  # type: ignore[attr-defined]
