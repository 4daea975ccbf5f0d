"""Business logic layer for drive app.

This package contains all business logic for content trees:
- Folder creation, file upload and lookups
- Recursive copy, move/rename with cycle detection
- Cascading delete of a subtree with its AI index and blobs

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).

Reference: https://github.com/dry-python
for decoupling business logic from Django views.
"""
