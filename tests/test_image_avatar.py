"""
Unit tests for aur.im.accounts.image.avatar
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from aur.im.accounts.errors import ErrorKind, ImageError, InvalidIdentifier, StorageError
from aur.im.accounts.image.avatar import AvatarResolver, validate_owner_id
from aur.im.accounts.image.codec import ImageFormat, detect_format
from tests.test_helpers import gif_bytes, jpeg_bytes, open_image, png_bytes, webp_bytes


def place(resolver: AvatarResolver, name: str, data: bytes) -> Path:
    resolver.directory.mkdir(parents=True, exist_ok=True)
    path = resolver.directory / name
    path.write_bytes(data)
    return path


class TestValidateOwnerId:
    @pytest.mark.parametrize("owner_id", ["114514", "user-001", "A_b-9"])
    def test_accepts_safe_ids(self, owner_id):
        assert validate_owner_id(owner_id) == owner_id

    @pytest.mark.parametrize(
        "owner_id", ["", "../etc/passwd", "..", "a/b", "a.b", "a b", "a\x00b", "ü", "42\n"]
    )
    def test_rejects_unsafe_ids(self, owner_id):
        with pytest.raises(InvalidIdentifier) as excinfo:
            validate_owner_id(owner_id)
        assert excinfo.value.kind is ErrorKind.INVALID_IDENTIFIER


class TestProbe:
    """Test suite for avatar lookup."""

    def test_no_avatar(self, avatar_resolver: AvatarResolver):
        assert avatar_resolver.probe("42") is None

    def test_prefers_png_over_jpg(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.jpg", jpeg_bytes())
        png_path = place(avatar_resolver, "42.png", png_bytes())

        found = avatar_resolver.probe("42")

        assert found is not None
        assert found.path == png_path
        assert found.media_type == "image/png"

    def test_probe_order(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.webp", webp_bytes())
        place(avatar_resolver, "42.gif", gif_bytes())

        found = avatar_resolver.probe("42")
        assert found is not None
        assert found.path.name == "42.gif"
        assert found.media_type == "image/gif"

    def test_jpeg_extension(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.jpeg", jpeg_bytes())
        found = avatar_resolver.probe("42")
        assert found is not None
        assert found.media_type == "image/jpeg"

    def test_other_owner_ignored(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "43.png", png_bytes())
        assert avatar_resolver.probe("42") is None

    def test_invalid_id_does_not_touch_filesystem(self, avatar_resolver: AvatarResolver, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("filesystem accessed")

        monkeypatch.setattr(Path, "is_file", fail)
        monkeypatch.setattr(Path, "exists", fail)

        with pytest.raises(InvalidIdentifier):
            avatar_resolver.probe("../secret")

    def test_existing_lists_all(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.png", png_bytes())
        place(avatar_resolver, "42.webp", webp_bytes())

        names = [f.path.name for f in avatar_resolver.existing("42")]
        assert names == ["42.png", "42.webp"]


class TestReplace:
    """Test suite for avatar ingestion."""

    def test_writes_canonical_webp(self, avatar_resolver: AvatarResolver):
        target = avatar_resolver.replace("42", png_bytes())

        assert target == avatar_resolver.directory / "42.webp"
        assert detect_format(target.read_bytes()) is ImageFormat.WEBP
        assert open_image(target.read_bytes()).size == (8, 8)

    def test_webp_stored_as_is(self, avatar_resolver: AvatarResolver):
        data = webp_bytes()
        target = avatar_resolver.replace("42", data)
        assert target.read_bytes() == data

    def test_removes_previous_files(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.png", png_bytes())
        place(avatar_resolver, "42.jpg", jpeg_bytes())

        avatar_resolver.replace("42", gif_bytes())

        assert [f.path.name for f in avatar_resolver.existing("42")] == ["42.webp"]
        found = avatar_resolver.probe("42")
        assert found is not None
        assert found.media_type == "image/webp"

    def test_overwrites_previous_webp(self, avatar_resolver: AvatarResolver):
        avatar_resolver.replace("42", png_bytes())
        second = webp_bytes(size=(4, 4))

        target = avatar_resolver.replace("42", second)

        assert target.read_bytes() == second

    def test_unrecognized_upload(self, avatar_resolver: AvatarResolver):
        with pytest.raises(ImageError) as excinfo:
            avatar_resolver.replace("42", b"not an image")
        assert excinfo.value.reason == ImageError.UNRECOGNIZED_FORMAT

    def test_delete_then_write_is_not_atomic(self, avatar_resolver: AvatarResolver):
        """A failed ingestion after the delete step leaves the owner without an avatar."""
        place(avatar_resolver, "42.png", png_bytes())

        with pytest.raises(ImageError):
            avatar_resolver.replace("42", b"not an image")

        assert avatar_resolver.probe("42") is None

    def test_delete_failure_is_fatal(self, avatar_resolver: AvatarResolver, monkeypatch):
        previous = place(avatar_resolver, "42.png", png_bytes())

        def fail_unlink(self, missing_ok=False):
            raise PermissionError("read-only")

        monkeypatch.setattr(Path, "unlink", fail_unlink)

        with pytest.raises(StorageError) as excinfo:
            avatar_resolver.replace("42", webp_bytes())
        assert excinfo.value.kind is ErrorKind.STORAGE
        assert previous.exists()
        assert not (avatar_resolver.directory / "42.webp").exists()

    def test_previous_file_removed_concurrently(
        self, avatar_resolver: AvatarResolver, monkeypatch
    ):
        """Another upload for the same owner deletes the old file between listing and unlink."""
        place(avatar_resolver, "42.png", png_bytes())
        unpatched_existing = AvatarResolver.existing

        def existing_then_removed(self, owner_id):
            found = unpatched_existing(self, owner_id)
            for avatar in found:
                avatar.path.unlink()
            return found

        monkeypatch.setattr(AvatarResolver, "existing", existing_then_removed)

        target = avatar_resolver.replace("42", webp_bytes())

        assert target == avatar_resolver.directory / "42.webp"
        assert not (avatar_resolver.directory / "42.png").exists()
        assert detect_format(target.read_bytes()) is ImageFormat.WEBP

    def test_concurrent_uploads_last_write_wins(self, avatar_resolver: AvatarResolver):
        """Uploads for one owner are not serialized; a later upload replaces an earlier one."""
        first = webp_bytes(size=(4, 4))
        second = webp_bytes(size=(6, 6))

        with ThreadPoolExecutor(max_workers=2) as pool:
            list(pool.map(lambda data: avatar_resolver.replace("42", data), [first, second]))

        stored = [f.path for f in avatar_resolver.existing("42")]
        assert stored == [avatar_resolver.directory / "42.webp"]

    def test_write_failure(self, avatar_resolver: AvatarResolver, monkeypatch):
        def fail_write(self, data):
            raise OSError("disk full")

        monkeypatch.setattr(Path, "write_bytes", fail_write)

        with pytest.raises(StorageError):
            avatar_resolver.replace("42", webp_bytes())

    def test_invalid_owner_id(self, avatar_resolver: AvatarResolver):
        with pytest.raises(InvalidIdentifier):
            avatar_resolver.replace("../42", webp_bytes())

    def test_creates_directory(self, tmp_path):
        resolver = AvatarResolver(tmp_path / "nested" / "avatars")
        target = resolver.replace("42", webp_bytes())
        assert target.exists()


class TestLoad:
    def test_no_avatar(self, avatar_resolver: AvatarResolver):
        assert avatar_resolver.load("42") is None

    def test_webp_returned_as_is(self, avatar_resolver: AvatarResolver):
        data = webp_bytes()
        place(avatar_resolver, "42.webp", data)
        assert avatar_resolver.load("42") == data

    def test_legacy_file_transcoded(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.jpg", jpeg_bytes())

        data = avatar_resolver.load("42")

        assert data is not None
        assert detect_format(data) is ImageFormat.WEBP

    def test_corrupt_file(self, avatar_resolver: AvatarResolver):
        place(avatar_resolver, "42.png", b"garbage")
        with pytest.raises(ImageError) as excinfo:
            avatar_resolver.load("42")
        assert excinfo.value.reason == ImageError.UNRECOGNIZED_FORMAT

    def test_invalid_owner_id(self, avatar_resolver: AvatarResolver):
        with pytest.raises(InvalidIdentifier):
            avatar_resolver.load("a/b")
