import asyncio
import io
import re

import pytest
from starlette.datastructures import Headers, UploadFile

from ailearn.core.exceptions import FileTooLarge, InvalidFileType, ValidationError
from ailearn.services.file_storage import (
    DOCUMENT,
    PROFILE,
    FileStorage,
    delete_file,
    delete_files,
    format_file_size,
    generate_unique_filename,
    storage_path,
    validate_file_type,
)


def _upload(name: str, content: bytes, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


def test_unique_filename_format():
    name = generate_unique_filename("doc", "user42", "My Notes (v2).pdf", timestamp=1700000000000, suffix=77)
    assert name == "doc-user42-1700000000000-77-My_Notes__v2_.pdf"


def test_unique_filename_guest_fallback_and_randomness():
    first = generate_unique_filename("profile", None, "me.png")
    second = generate_unique_filename("profile", None, "me.png")

    assert re.fullmatch(r"profile-guest-\d+-\d+-me\.png", first)
    assert first != second


def test_unique_filename_strips_client_directories():
    name = generate_unique_filename("doc", "u", "C:\\Users\\bob\\report.final.docx", timestamp=1, suffix=2)
    assert name == "doc-u-1-2-report.final.docx"


def test_storage_path_uses_category_directory():
    path = storage_path("document", "u1", "a.pdf", timestamp=5, suffix=6)
    assert str(path) == "documents/doc-u1-5-6-a.pdf"
    assert str(storage_path(PROFILE, "u1", "a.png", timestamp=5, suffix=6)) == "profiles/profile-u1-5-6-a.png"


@pytest.mark.parametrize(
    "filename, content_type, category, expected",
    [
        ("resume.pdf", "application/pdf", DOCUMENT, True),
        ("RESUME.PDF", "application/pdf", DOCUMENT, True),
        ("notes.txt", "text/plain; charset=utf-8", DOCUMENT, True),
        ("resume.exe", "application/pdf", DOCUMENT, False),
        ("resume.exe", "application/octet-stream", DOCUMENT, False),
        ("resume.pdf", "image/png", DOCUMENT, False),
        # both allowed on their own, but they disagree
        ("slides.pptx", "application/pdf", DOCUMENT, False),
        ("photo.jpg", "image/jpeg", PROFILE, True),
        ("photo.jpg", "image/png", PROFILE, False),
        ("photo.webp", "image/webp", PROFILE, True),
        ("photo.pdf", "application/pdf", PROFILE, False),
        ("noextension", "image/png", PROFILE, False),
    ],
)
def test_validate_file_type(filename, content_type, category, expected):
    assert validate_file_type(filename, content_type, category) is expected


def test_delete_file_is_idempotent(tmp_path):
    target = tmp_path / "file.txt"
    target.write_text("x")

    assert delete_file(target) is True
    assert delete_file(target) is False
    assert delete_files([tmp_path / "missing-1", tmp_path / "missing-2"]) == {
        "success_count": 0,
        "fail_count": 2,
        "total": 2,
    }


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 Bytes"), (512, "512 Bytes"), (1024, "1 KB"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_save_writes_file_and_returns_reference(tmp_path):
    storage = FileStorage(tmp_path)
    stored = asyncio.run(storage.save(_upload("resume.pdf", b"%PDF-1.4 data", "application/pdf"), "document", "u1"))

    assert stored.path.read_bytes() == b"%PDF-1.4 data"
    assert stored.reference.startswith("uploads/documents/doc-u1-")
    assert stored.size == len(b"%PDF-1.4 data")
    assert storage.resolve(stored.reference) == stored.path.resolve()

    assert storage.delete(stored.reference) is True
    assert storage.delete(stored.reference) is False


def test_save_rejects_invalid_type_without_writing(tmp_path):
    storage = FileStorage(tmp_path)
    with pytest.raises(InvalidFileType):
        asyncio.run(storage.save(_upload("resume.exe", b"MZ", "application/pdf"), "document"))
    assert not any(tmp_path.rglob("*.exe"))


def test_save_rejects_oversized_file_and_removes_partial(tmp_path):
    storage = FileStorage(tmp_path, max_document_size=10)
    with pytest.raises(FileTooLarge):
        asyncio.run(storage.save(_upload("big.txt", b"x" * 11, "text/plain"), "document"))
    assert not [p for p in tmp_path.rglob("*") if p.is_file()]


def test_save_many_enforces_batch_limit(tmp_path):
    storage = FileStorage(tmp_path, max_files=2)
    uploads = [_upload(f"n{i}.txt", b"x", "text/plain") for i in range(3)]
    with pytest.raises(ValidationError):
        asyncio.run(storage.save_many(uploads, "document"))


def test_save_many_rolls_back_on_bad_file(tmp_path):
    storage = FileStorage(tmp_path)
    uploads = [_upload("ok.txt", b"x", "text/plain"), _upload("bad.exe", b"x", "application/pdf")]
    with pytest.raises(InvalidFileType):
        asyncio.run(storage.save_many(uploads, "document"))
    assert not [p for p in tmp_path.rglob("*") if p.is_file()]


def test_resolve_refuses_paths_outside_root(tmp_path):
    storage = FileStorage(tmp_path / "uploads")
    assert storage.resolve("uploads/../../etc/passwd") is None
    assert storage.delete("uploads/../../etc/passwd") is False
