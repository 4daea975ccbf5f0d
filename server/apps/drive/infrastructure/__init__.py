"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Custom storage backend (S3/MinIO/R2)
- Metadata extraction for uploads
- AI indexing hand-off

Keep infrastructure concerns separate from business logic.
"""
