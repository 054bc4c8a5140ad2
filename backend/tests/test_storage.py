import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import patch
from io import BytesIO

from fastapi import UploadFile, HTTPException
from PIL import Image

from app.core.storage import (
    save_file, delete_file, fit_thumbnail, get_local_path, file_exists, StorageError
)


@pytest.fixture
def temp_upload_dir():
    """Create temporary directory for testing"""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def mock_settings(temp_upload_dir):
    with patch('app.core.storage.settings') as mock_settings:
        mock_settings.UPLOAD_PATH = temp_upload_dir
        mock_settings.UPLOAD_URL = "/test-uploads"
        mock_settings.MAX_FILE_SIZE = 1024
        mock_settings.MAX_VIDEO_SIZE = 10 * 1024
        mock_settings.THUMBNAIL_MAX_WIDTH = 320
        mock_settings.THUMBNAIL_MAX_HEIGHT = 180
        yield mock_settings


def _upload(filename="test.jpg", content=b"test file content", content_type="image/jpeg"):
    return UploadFile(
        filename=filename,
        file=BytesIO(content),
        size=len(content),
        headers={"content-type": content_type},
    )


class TestLocalStorage:

    def test_save_file_success(self, mock_settings):
        """Test successful file save"""
        url, local_path, generated_filename = save_file(_upload(), "thumbnail")

        assert Path(local_path).exists()
        assert url.startswith("/test-uploads/thumbnail/")
        assert url.endswith("_test.jpg")
        assert generated_filename != "test.jpg"

        with open(local_path, "rb") as f:
            assert f.read() == b"test file content"

    def test_save_file_invalid_purpose(self, mock_settings):
        with pytest.raises(HTTPException) as exc_info:
            save_file(_upload(), "avatar")
        assert exc_info.value.status_code == 400

    def test_save_file_no_filename(self, mock_settings):
        with pytest.raises(HTTPException) as exc_info:
            save_file(_upload(filename=""), "other")
        assert exc_info.value.status_code == 400

    def test_save_file_wrong_type(self, mock_settings):
        with pytest.raises(HTTPException) as exc_info:
            save_file(_upload("clip.mp4", content_type="video/mp4"), "thumbnail")
        assert exc_info.value.status_code == 422

    def test_video_size_limit_is_separate(self, mock_settings):
        big = b"\x00" * 2048
        url, _, _ = save_file(_upload("clip.mp4", big, "video/mp4"), "video")
        assert url.startswith("/test-uploads/video/")

        with pytest.raises(HTTPException) as exc_info:
            save_file(_upload("big.png", big, "image/png"), "thumbnail")
        assert exc_info.value.status_code == 413

    def test_delete_file_success(self, mock_settings):
        _, local_path, _ = save_file(_upload(), "other")

        assert delete_file(local_path) is True
        assert not file_exists(local_path)

    def test_delete_nonexistent_file(self, mock_settings):
        assert delete_file("/nonexistent/path/file.txt") is False

    def test_get_local_path(self, mock_settings, temp_upload_dir):
        url, local_path, _ = save_file(_upload(), "other")

        assert get_local_path(url) == local_path
        assert get_local_path("https://cdn.example.com/x.mp4") == "https://cdn.example.com/x.mp4"


class TestThumbnails:

    def _image(self, directory: str, size) -> str:
        path = str(Path(directory) / "cover.png")
        Image.new("RGB", size, color=(200, 40, 40)).save(path, format="PNG")
        return path

    def test_large_image_is_shrunk(self, mock_settings, temp_upload_dir):
        path = self._image(temp_upload_dir, (1600, 1600))

        assert fit_thumbnail(path) == (180, 180)
        with Image.open(path) as img:
            assert img.size == (180, 180)
            assert img.format == "PNG"

    def test_small_image_untouched(self, mock_settings, temp_upload_dir):
        path = self._image(temp_upload_dir, (100, 50))
        assert fit_thumbnail(path) == (100, 50)

    def test_not_an_image(self, mock_settings, temp_upload_dir):
        path = Path(temp_upload_dir) / "fake.png"
        path.write_bytes(b"definitely not png data")

        with pytest.raises(StorageError):
            fit_thumbnail(str(path))
