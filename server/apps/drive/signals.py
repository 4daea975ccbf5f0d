"""Signals sent by drive app."""

from django.dispatch import Signal

# Sent after commit once a file item is queued for AI indexing.
# Receivers get ``item_id`` and run the external indexer for it.
file_ready_for_indexing = Signal()
