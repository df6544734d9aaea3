"""Tests for streamupload models."""
from pathlib import Path

import pytest

from streamupload.models import (
    StagedUploadFile,
    UploadConfig,
    UploadKind,
    UploadPhase,
    VideoUploadTask,
)


class TestUploadKind:
    def test_mime_types(self):
        assert UploadKind.JPEG.mime == "image/jpeg"
        assert UploadKind.PNG.mime == "image/png"
        assert UploadKind.QUICKTIME.mime == "video/quicktime"

    def test_file_extensions(self):
        assert UploadKind.JPEG.file_extension == ".jpg"
        assert UploadKind.PNG.file_extension == ".png"
        assert UploadKind.QUICKTIME.file_extension == ".mov"

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("photo.jpg", UploadKind.JPEG),
            ("photo.jpeg", UploadKind.JPEG),
            ("PHOTO.JPG", UploadKind.JPEG),
            ("screen.png", UploadKind.PNG),
            ("clip.mov", UploadKind.QUICKTIME),
            ("notes.txt", None),
            ("movie.mp4", None),
            ("noextension", None),
        ],
    )
    def test_from_path(self, name, expected):
        assert UploadKind.from_path(Path("/tmp") / name) is expected

    def test_from_path_accepts_strings(self):
        assert UploadKind.from_path("/var/media/a.png") is UploadKind.PNG


class TestUploadPhase:
    def test_finished(self):
        assert UploadPhase.COMPLETED.finished is True
        assert UploadPhase.FAILED.finished is True
        assert UploadPhase.SUBMITTED.finished is False
        assert UploadPhase.STAGING.finished is False


class TestStagedUploadFile:
    def test_release_deletes_file(self, tmp_path):
        path = tmp_path / "body.tmp"
        path.write_bytes(b"body")
        staged = StagedUploadFile(path=path, size=4)

        staged.release()

        assert not path.exists()
        assert staged.released is True

    def test_release_is_idempotent(self, tmp_path):
        path = tmp_path / "body.tmp"
        path.write_bytes(b"body")
        staged = StagedUploadFile(path=path, size=4)

        staged.release()
        staged.release()

        assert not path.exists()

    def test_context_manager_releases(self, tmp_path):
        path = tmp_path / "body.tmp"
        path.write_bytes(b"body")

        with StagedUploadFile(path=path, size=4) as staged:
            assert staged.path.exists()

        assert not path.exists()


class TestVideoUploadTask:
    def test_success_only_when_completed(self):
        task = VideoUploadTask(task_id=1, url="http://x", filename="a.tmp")
        assert task.success is False
        task.phase = UploadPhase.COMPLETED
        assert task.success is True


class TestUploadConfig:
    def test_defaults(self):
        config = UploadConfig()
        assert config.chunk_size == 65536
        assert config.media_field == "image"
        assert config.video_field == "video"
        assert config.video_endpoint is None

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError, match="chunk_size"):
            UploadConfig(chunk_size=0)

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STREAMUPLOAD_CHUNK_SIZE", "1024")
        monkeypatch.setenv("STREAMUPLOAD_TEMP_DIR", str(tmp_path))
        monkeypatch.setenv("STREAMUPLOAD_VIDEO_ENDPOINT", "https://example.com/videos")
        monkeypatch.setenv("STREAMUPLOAD_TIMEOUT", "5")
        monkeypatch.delenv("STREAMUPLOAD_MEDIA_FIELD", raising=False)

        config = UploadConfig.from_env()

        assert config.chunk_size == 1024
        assert config.temp_dir == tmp_path
        assert config.video_endpoint == "https://example.com/videos"
        assert config.request_timeout == 5.0
        assert config.media_field == "image"
