# Tests/test_object_storage.py
import pytest

from Services.errors import UploadError
from Services.object_storage import sanitize_filename


def test_same_filename_uploads_keep_both_files(storage):
    first = storage.upload("photo.jpg", b"first", "vehicles")
    second = storage.upload("photo.jpg", b"second", "vehicles")

    assert first != second
    assert storage.path_for(first).read_bytes() == b"first"
    assert storage.path_for(second).read_bytes() == b"second"
    assert first.startswith("/uploads/vehicles/") and first.endswith("_photo.jpg")


def test_empty_upload_is_rejected(storage):
    with pytest.raises(UploadError):
        storage.upload("empty.jpg", b"", "vehicles")


def test_sanitize_filename():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("my car (1).jpg") == "my_car_1_.jpg"
    assert sanitize_filename("") == "upload"


def test_path_for_stays_inside_root(storage):
    assert storage.path_for("/uploads/../../paths.py") is None
    assert storage.path_for("/uploads/vehicles/../../outside.txt") is None
    assert storage.path_for("https://elsewhere.example/a.jpg") is None


def test_delete_ignores_paths_outside_root(storage, tmp_path):
    outside = tmp_path / "outside.txt"
    outside.write_text("keep me")

    storage.delete("/uploads/../outside.txt")
    assert outside.exists()


def test_delete_missing_object_is_quiet(storage):
    url = storage.upload("a.jpg", b"x", "vehicles")
    storage.delete(url)
    storage.delete(url)
    assert not storage.path_for(url).exists()
