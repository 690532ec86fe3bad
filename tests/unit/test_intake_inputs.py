"""Unit tests for intake schemas, attachment storage and the dashboard cache."""

import uuid

import pytest
from pydantic import ValidationError

from indicator_workflow.engines.submission.attachments import LocalAttachmentStorage, clean_storage_path
from indicator_workflow.engines.submission.cache import InMemoryDashboardCache
from indicator_workflow.schemas import (
    ExistingAttachmentRef,
    ReviewDecision,
    SubmissionCreate,
    UploadedAttachment,
)


class TestReviewDecision:
    """Rejections must carry feedback."""

    def test_approval_without_comment(self):
        decision = ReviewDecision(approved=True)
        assert decision.comment is None

    def test_rejection_requires_comment(self):
        with pytest.raises(ValidationError):
            ReviewDecision(approved=False)

    def test_rejection_with_blank_comment_rejected(self):
        with pytest.raises(ValidationError):
            ReviewDecision(approved=False, comment="   ")

    def test_rejection_with_comment(self):
        decision = ReviewDecision(approved=False, comment="Figures do not match the bank statement")
        assert decision.approved is False


class TestSubmissionCreate:
    """Attachment inputs parse into their three shapes."""

    def test_attachment_shapes(self):
        attachment_id = uuid.uuid4()
        data = SubmissionCreate(
            indicator_task_id=uuid.uuid4(),
            value="85",
            attachments=[
                {"filename": "evidence.pdf", "content": b"%PDF"},
                {"attachment_id": str(attachment_id)},
                "abc/report.pdf",
            ],
        )
        uploaded, existing, path = data.attachments
        assert isinstance(uploaded, UploadedAttachment)
        assert isinstance(existing, ExistingAttachmentRef)
        assert existing.attachment_id == attachment_id
        assert path == "abc/report.pdf"

    def test_value_types_preserved(self):
        """Booleans stay booleans so boolean indicators normalize correctly."""
        task_id = uuid.uuid4()
        assert SubmissionCreate(indicator_task_id=task_id, value=True).value is True
        assert SubmissionCreate(indicator_task_id=task_id, value="true").value == "true"

    def test_task_id_required(self):
        with pytest.raises(ValidationError):
            SubmissionCreate(value="85")


class TestCleanStoragePath:
    """Admin-form paths lose their storage prefixes."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("storage/app/public/indicator_submissions/abc/file.pdf", "abc/file.pdf"),
            ("/indicator_submissions/abc/file.pdf", "abc/file.pdf"),
            ("public/indicator_submissions/abc/file.pdf", "abc/file.pdf"),
            ("abc/file.pdf", "abc/file.pdf"),
        ],
    )
    def test_prefixes_stripped(self, raw, expected):
        assert clean_storage_path(raw) == expected


class TestLocalAttachmentStorage:
    """Filesystem-backed attachment storage."""

    def test_store_and_describe(self, tmp_path):
        storage = LocalAttachmentStorage(str(tmp_path))

        stored = storage.store("evidence.pdf", b"hello", "application/pdf")

        assert stored.path.endswith("/evidence.pdf")
        assert stored.size == 5
        assert stored.mime_type == "application/pdf"
        assert storage.exists(stored.path)

    def test_mime_type_guessed_from_name(self, tmp_path):
        storage = LocalAttachmentStorage(str(tmp_path))
        stored = storage.store("photo.png", b"\x89PNG")
        assert stored.mime_type == "image/png"

    def test_copy_creates_independent_file(self, tmp_path):
        storage = LocalAttachmentStorage(str(tmp_path))
        original = storage.store("evidence.pdf", b"hello")

        copied = storage.copy(original.path)

        assert copied.path != original.path
        assert storage.exists(copied.path)
        assert storage.exists(original.path)
        assert (tmp_path / copied.path).read_bytes() == b"hello"

    def test_paths_outside_root_do_not_exist(self, tmp_path):
        """Traversal out of the storage root is refused."""
        (tmp_path / "secret.txt").write_text("x")
        storage = LocalAttachmentStorage(str(tmp_path / "root"))
        assert storage.exists("../secret.txt") is False

    def test_missing_file(self, tmp_path):
        storage = LocalAttachmentStorage(str(tmp_path))
        assert storage.exists("nope/missing.pdf") is False

    def test_delete_removes_file_and_upload_directory(self, tmp_path):
        storage = LocalAttachmentStorage(str(tmp_path))
        stored = storage.store("evidence.pdf", b"hello")

        storage.delete(stored.path)

        assert storage.exists(stored.path) is False
        assert list(tmp_path.iterdir()) == []

    def test_delete_missing_file_is_noop(self, tmp_path):
        storage = LocalAttachmentStorage(str(tmp_path))
        storage.store("keep.pdf", b"keep")

        storage.delete("gone/missing.pdf")

        assert len(list(tmp_path.iterdir())) == 1


class TestDashboardCache:
    """Invalidation drops one seat only."""

    @pytest.mark.asyncio
    async def test_invalidate_seat(self):
        cache = InMemoryDashboardCache()
        seat = (uuid.uuid4(), uuid.uuid4(), uuid.uuid4())
        other = (uuid.uuid4(), uuid.uuid4(), uuid.uuid4())
        cache.put(seat, "summary", {"completed": 3})
        cache.put(other, "summary", {"completed": 1})

        await cache.invalidate(*seat)

        assert cache.get(seat, "summary") is None
        assert cache.get(other, "summary") == {"completed": 1}
