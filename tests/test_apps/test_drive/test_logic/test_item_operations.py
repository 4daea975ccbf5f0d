"""Tests for single item operations."""

from unittest.mock import patch

import pytest
from django.core.files.base import ContentFile

from server.apps.drive.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.logic.item_operations import (
    create_file_from_url,
    create_folder,
    ensure_user_folder,
    get_item,
    get_item_path,
    list_children,
    upload_file,
)
from server.apps.drive.models import AIStatus, ContentSource, Item, ItemType


@pytest.mark.django_db
class TestCreateFolder:
    """Tests for create_folder."""

    def test_create_top_level_folder(self, user):
        """Test folder without a parent."""
        folder = create_folder(user, 'Documents')

        assert folder.item_type == ItemType.FOLDER
        assert folder.parent is None
        assert folder.size is None

    def test_create_nested_folder(self, user):
        """Test folder under another folder."""
        parent = create_folder(user, 'Documents')

        child = create_folder(user, 'Invoices', parent_id=parent.id)

        assert child.parent_id == parent.id

    def test_duplicate_sibling_name(self, user):
        """Test two top-level folders cannot share a name."""
        create_folder(user, 'Documents')

        with pytest.raises(ConflictError):
            create_folder(user, 'Documents')

    def test_same_name_for_other_user(self, user, other_user):
        """Test names are unique per owner only."""
        create_folder(user, 'Documents')

        folder = create_folder(other_user, 'Documents')

        assert folder.owner == other_user

    def test_parent_must_be_owned(self, user, other_user):
        """Test folders cannot be created in someone else's folder."""
        foreign = create_folder(other_user, 'Theirs')

        with pytest.raises(NotFoundError):
            create_folder(user, 'Mine', parent_id=foreign.id)

    def test_parent_must_be_folder(self, user, make_file):
        """Test files cannot hold children."""
        note = make_file(user, 'note.txt')

        with pytest.raises(InvalidInputError):
            create_folder(user, 'Inside', parent_id=note.id)

    @pytest.mark.parametrize('name', ['', '   ', 'a/b', 'x' * 256])
    def test_invalid_names(self, user, name):
        """Test name validation."""
        with pytest.raises(InvalidInputError):
            create_folder(user, name)


@pytest.mark.django_db
class TestUploadFile:
    """Tests for upload_file."""

    def test_upload_creates_item_and_blob(self, user, mock_s3, sample_file_content):
        """Test the blob lands in storage and the item points at it."""
        item = upload_file(user, 'test.txt', sample_file_content)

        assert item.item_type == ItemType.FILE
        assert item.size == len(b'test file content')
        assert item.mime_type == 'text/plain'
        assert item.content_source == ContentSource.USER_UPLOAD
        assert item.url.startswith('https://')

        keys = [obj.key for obj in mock_s3.Bucket('drive-market').objects.all()]
        assert len(keys) == 1
        assert keys[0].startswith(f'uploads/{user.id}/')
        assert item.url.endswith(keys[0])

    def test_upload_queues_indexing(self, user, mock_s3, sample_file_content, django_capture_on_commit_callbacks):
        """Test processable files are marked pending."""
        with django_capture_on_commit_callbacks() as callbacks:
            item = upload_file(user, 'test.txt', sample_file_content)

        item.refresh_from_db()
        assert item.ai_status == AIStatus.PENDING
        assert len(callbacks) == 1

    def test_upload_conflict_rolls_back_blob(self, user, mock_s3):
        """Test a name clash removes the uploaded blob again."""
        upload_file(user, 'dup.txt', ContentFile(b'one', name='dup.txt'))

        with pytest.raises(ConflictError):
            upload_file(user, 'dup.txt', ContentFile(b'two', name='dup.txt'))

        assert len(list(mock_s3.Bucket('drive-market').objects.all())) == 1
        assert Item.objects.filter(name='dup.txt').count() == 1

    def test_upload_database_failure_rolls_back_blob(self, user, mock_s3, sample_file_content):
        """Test unexpected database errors also remove the blob."""
        with patch.object(
            Item.objects,
            'create',
            side_effect=RuntimeError('database is gone'),
        ):
            with pytest.raises(RuntimeError):
                upload_file(user, 'test.txt', sample_file_content)

        assert not list(mock_s3.Bucket('drive-market').objects.all())

    def test_upload_into_missing_folder(self, user, mock_s3, sample_file_content):
        """Test nothing is uploaded when the parent is invalid."""
        with pytest.raises(NotFoundError):
            upload_file(user, 'test.txt', sample_file_content, parent_id=999999)

        assert not list(mock_s3.Bucket('drive-market').objects.all())


@pytest.mark.django_db
class TestCreateFileFromUrl:
    """Tests for create_file_from_url."""

    def test_registers_file(self, user):
        """Test a file item is created without uploading."""
        item = create_file_from_url(
            user,
            'report.pdf',
            'https://cdn.example.com/report.pdf',
            size=2048,
            mime_type='application/pdf',
        )

        assert item.size == 2048
        assert item.url == 'https://cdn.example.com/report.pdf'

    def test_url_required(self, user):
        """Test an empty url is rejected."""
        with pytest.raises(InvalidInputError):
            create_file_from_url(user, 'report.pdf', '')

    def test_negative_size(self, user):
        """Test negative sizes are rejected."""
        with pytest.raises(InvalidInputError):
            create_file_from_url(user, 'report.pdf', 'https://x/y', size=-1)


@pytest.mark.django_db
class TestQueries:
    """Tests for get_item, list_children and get_item_path."""

    def test_get_item_of_other_user(self, user, other_user, make_file):
        """Test items are only visible to their owner."""
        note = make_file(user, 'note.txt')

        assert get_item(note.id, user) == note
        with pytest.raises(NotFoundError):
            get_item(note.id, other_user)

    def test_list_children_folders_first(self, user, make_folder, make_file):
        """Test folders come before files, each sorted by name."""
        parent = make_folder(user, 'root')
        make_file(user, 'b.txt', parent=parent)
        make_folder(user, 'z-folder', parent=parent)
        make_file(user, 'a.txt', parent=parent)

        names = [item.name for item in list_children(user, parent.id)]

        assert names == ['z-folder', 'a.txt', 'b.txt']

    def test_list_top_level(self, user, other_user, make_folder):
        """Test top-level listing is scoped to the owner."""
        make_folder(user, 'mine')
        make_folder(other_user, 'theirs')

        assert [item.name for item in list_children(user)] == ['mine']

    def test_item_path(self, user, make_folder, make_file):
        """Test breadcrumb runs from the top level down."""
        top = make_folder(user, 'top')
        middle = make_folder(user, 'middle', parent=top)
        leaf = make_file(user, 'leaf.txt', parent=middle)

        path = get_item_path(leaf.id, user)

        assert [item.name for item in path] == ['top', 'middle', 'leaf.txt']


@pytest.mark.django_db
class TestEnsureUserFolder:
    """Tests for ensure_user_folder."""

    def test_creates_once(self, user):
        """Test the folder is created on first use and reused after."""
        first = ensure_user_folder(user, 'marketplace')
        second = ensure_user_folder(user, 'marketplace')

        assert first.id == second.id
        assert first.parent is None
        assert Item.objects.filter(owner=user, name='marketplace').count() == 1

    def test_file_with_same_name(self, user, make_file):
        """Test a top-level file blocks the folder."""
        make_file(user, 'shared')

        with pytest.raises(ConflictError):
            ensure_user_folder(user, 'shared')

    def test_nested_folder_with_same_name(self, user, make_folder):
        """Test only top-level folders are reused."""
        parent = make_folder(user, 'projects')
        nested = make_folder(user, 'shared', parent=parent)

        folder = ensure_user_folder(user, 'shared')

        assert folder.id != nested.id
        assert folder.parent is None
