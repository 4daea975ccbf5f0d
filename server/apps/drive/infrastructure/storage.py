"""Custom storage backend for S3-compatible storage."""

import logging
from typing import Any, final, override
from urllib.parse import unquote, urlparse

from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for drive files.

    Extends django-storages S3Storage with:
    - Transaction rollback support for failed DB operations
    - Url based deletion, since items keep the public url of their blob
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded file for DB transaction rollback.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Storage path of file to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting file: %s', name)
            self.delete(name)
            logger.info('Successfully rolled back file upload: %s', name)
        except Exception:
            # The file stays in storage but not in database
            logger.exception(
                'Failed to rollback upload, orphaned file: %s',
                name,
            )

    def key_from_url(self, url: str) -> str | None:
        """Extract the object key from a stored item url.

        Handles these shapes:
        - https://bucket.s3.region.amazonaws.com/key (virtual host)
        - https://s3.region.amazonaws.com/bucket/key (path style)
        - https://bucket.account.r2.cloudflarestorage.com/key (R2)
        - https://custom.domain/key or http://minio:9000/bucket/key

        Args:
            url: Public url of the blob.

        Returns:
            Object key, or None when the url has no usable path.
        """
        parsed = urlparse(url)
        if parsed.scheme not in {'http', 'https'} or not parsed.path:
            return None

        path = unquote(parsed.path).lstrip('/')
        hostname = parsed.hostname or ''

        path_style = hostname.startswith('s3.') or (
            not hostname.startswith(f'{self.bucket_name}.')
            and path.startswith(f'{self.bucket_name}/')
        )
        if path_style:
            _, _, path = path.partition('/')

        return path or None

    def delete_blob(self, url: str) -> bool:
        """Delete the blob behind an item url.

        Never raises: the caller treats blob cleanup as best-effort.

        Args:
            url: Public url of the blob.

        Returns:
            True if the delete request succeeded, False otherwise.
        """
        key = self.key_from_url(url)
        if key is None:
            logger.warning('Cannot derive storage key from url: %s', url)
            return False

        try:
            self.delete(key)
        except Exception:
            logger.exception('Failed to delete blob for url: %s', url)
            return False
        return True
